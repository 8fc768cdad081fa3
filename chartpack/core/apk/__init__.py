"""APK 软件包仓库访问

- models.py: 数据模型
- version.py: 版本比较与约束
- expand.py: 包数据流切分
- signing.py: 索引签名校验
- source.py: 仓库内容读取
- index.py: 仓库索引加载
- resolver.py: 依赖解析
- fetcher.py: 下载
"""

from chartpack.core.apk.expand import PackageStream, split, split_stream
from chartpack.core.apk.fetcher import FetchedPackage, PackageFetcher, fetch_package
from chartpack.core.apk.models import PackageQuery, RepositoryPackage, ResolvedPackageSet
from chartpack.core.apk.resolver import PackageResolver

__all__ = [
    "FetchedPackage",
    "PackageFetcher",
    "PackageQuery",
    "PackageResolver",
    "PackageStream",
    "RepositoryPackage",
    "ResolvedPackageSet",
    "fetch_package",
    "split",
    "split_stream",
]
