"""软件包数据模型

数据类:
- PackageQuery: 单次构建的查询输入
- RepositoryPackage: 仓库索引中的一条包记录
- ResolvedPackageSet: 依赖闭包 + 冲突列表
"""

from __future__ import annotations

from dataclasses import dataclass, field

INDEX_FILENAME = "APKINDEX.tar.gz"


@dataclass(frozen=True)
class PackageQuery:
    """包查询: 名称 + 可选版本约束 + 目标架构"""

    name: str
    version: str | None = None
    arch: str = ""

    def atom(self) -> str:
        """转换为 world 依赖项，如 ``istio-charts-base=1.20.3-r0``"""
        if self.version:
            return f"{self.name}={self.version}"
        return self.name


@dataclass
class RepositoryPackage:
    """仓库索引中的单个包"""

    name: str
    version: str
    arch: str = ""
    depends: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    checksum: str = ""        # C: 字段，Q1 + base64(sha1(control 段))
    size: int = 0
    description: str = ""
    repository: str = ""      # 来源仓库根地址

    @property
    def filename(self) -> str:
        return f"{self.name}-{self.version}.apk"

    @property
    def location(self) -> str:
        return f"{self.repository.rstrip('/')}/{self.arch}/{self.filename}"

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass
class ResolvedPackageSet:
    """解析结果

    packages 中每个包只出现一次，顺序为解析器发现顺序；
    conflicts 非空时不允许下载任何包。
    """

    packages: list[RepositoryPackage] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    def select(self, name: str) -> RepositoryPackage | None:
        """按解析顺序返回第一个同名包"""
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        return None
