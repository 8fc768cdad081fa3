"""仓库索引加载

职责:
- 读取 ``<repo>/<arch>/APKINDEX.tar.gz``
- 校验索引签名（配置了受信公钥时为强制）
- 解析 APKINDEX 文本记录为 RepositoryPackage
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from chartpack.core.apk import signing, version
from chartpack.core.apk.expand import read_members, split
from chartpack.core.apk.models import INDEX_FILENAME, RepositoryPackage
from chartpack.core.apk.source import PackageSource
from chartpack.core.exceptions import (
    BuildCancelledError,
    ChartPackError,
    ResolutionError,
)

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

logger = logging.getLogger(__name__)


@dataclass
class RepositoryIndex:
    """单个仓库在某一架构下的包列表"""

    repository: str
    arch: str
    packages: list[RepositoryPackage] = field(default_factory=list)


def parse_index(text: str, repository: str = "", arch: str = "") -> list[RepositoryPackage]:
    """解析 APKINDEX 文本

    记录之间以空行分隔，每行 ``<字段>:<值>``。版本非法的记录跳过。
    """
    packages: list[RepositoryPackage] = []
    for block in text.split("\n\n"):
        fields: dict[str, str] = {}
        for line in block.splitlines():
            if len(line) < 2 or line[1] != ":":
                continue
            fields[line[0]] = line[2:]
        name, ver = fields.get("P"), fields.get("V")
        if not name or not ver:
            continue
        if not version.is_valid(ver):
            logger.warning("索引记录版本非法，跳过: %s-%s", name, ver)
            continue
        packages.append(RepositoryPackage(
            name=name,
            version=ver,
            arch=fields.get("A", arch),
            depends=fields.get("D", "").split(),
            provides=fields.get("p", "").split(),
            checksum=fields.get("C", ""),
            size=int(fields.get("S", "0") or 0),
            description=fields.get("T", ""),
            repository=repository,
        ))
    return packages


def load_index(
    repository: str,
    arch: str,
    keys: dict[str, RSAPublicKey],
    source: PackageSource,
) -> RepositoryIndex:
    """加载并校验单个仓库索引"""
    location = f"{repository.rstrip('/')}/{arch}/{INDEX_FILENAME}"
    try:
        raw = source.read(location, "repository index fetch")
    except BuildCancelledError:
        raise
    except (OSError, ConnectionError, ChartPackError) as exc:
        raise ResolutionError(f"failed to load repository index {location}: {exc}") from exc

    try:
        stream = split(raw)
        segments = stream.segments
        index_members = read_members(stream.data_segment)
        sign_members = read_members(segments[0]) if len(segments) >= 2 else {}
    except ChartPackError as exc:
        raise ResolutionError(f"failed to load repository index {location}: {exc}") from exc

    if keys:
        if len(segments) < 2 or signing.verify(sign_members, stream.data_segment, keys) is None:
            raise ResolutionError(
                f"repository index {location} is not signed by a trusted key "
                f"(trusted: {sorted(keys)})"
            )
    elif not sign_members:
        logger.warning("未配置受信公钥，接受未签名索引: %s", location)

    text = index_members.get("APKINDEX")
    if text is None:
        raise ResolutionError(f"repository index {location} has no APKINDEX entry")

    packages = parse_index(text.decode("utf-8"), repository=repository, arch=arch)
    logger.info("已加载仓库索引 %s: %d 个包", location, len(packages))
    return RepositoryIndex(repository=repository, arch=arch, packages=packages)
