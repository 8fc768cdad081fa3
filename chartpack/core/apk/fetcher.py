"""软件包拉取器

职责:
- 加载各仓库索引并解析依赖闭包
- 存在冲突时拒绝下载
- 下载选中的包（可关闭字节流 / 临时文件两种形式）
- 校验控制段 checksum
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from chartpack.core.apk import signing
from chartpack.core.apk.expand import split
from chartpack.core.apk.index import load_index
from chartpack.core.apk.models import PackageQuery, RepositoryPackage, ResolvedPackageSet
from chartpack.core.apk.resolver import PackageResolver
from chartpack.core.apk.source import PackageSource
from chartpack.core.cancel import CancelToken
from chartpack.core.exceptions import (
    BuildCancelledError,
    ChartPackError,
    ConfigError,
    DecompositionError,
    ResolutionError,
)

logger = logging.getLogger(__name__)


@dataclass
class FetchedPackage:
    """已下载到临时文件的包，调用方负责 cleanup()"""

    path: Path
    package: RepositoryPackage

    def cleanup(self) -> None:
        self.path.unlink(missing_ok=True)


class PackageFetcher:
    """依赖包拉取器 - 解析 + 下载"""

    def __init__(
        self,
        repositories: list[str],
        keys: list[str] | None = None,
        *,
        source: PackageSource | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        if not repositories:
            raise ConfigError("no package repository configured")
        self.repositories = list(repositories)
        self.keys = signing.load_public_keys(list(keys or []))
        self.cancel = cancel or CancelToken()
        self.source = source or PackageSource(cancel=self.cancel)

    def resolve(self, query: PackageQuery) -> ResolvedPackageSet:
        """解析查询的依赖闭包；冲突非空时抛出 ResolutionError"""
        indexes = []
        for repo in self.repositories:
            self.cancel.raise_if_cancelled("package resolution")
            indexes.append(load_index(repo, query.arch, self.keys, self.source))

        resolved = PackageResolver(indexes, cancel=self.cancel).resolve(query)
        if resolved.conflicts:
            raise ResolutionError(f"package conflicts detected: {resolved.conflicts}")
        return resolved

    def select(self, query: PackageQuery) -> RepositoryPackage:
        resolved = self.resolve(query)
        pkg = resolved.select(query.name)
        if pkg is None:
            if query.version:
                raise ResolutionError(
                    f"package {query.name} with version constraint {query.version} "
                    f"not found in repository for arch {query.arch}"
                )
            raise ResolutionError(
                f"package {query.name} not found in repository for arch {query.arch}"
            )
        logger.info("已选中: %s (%s)", pkg, pkg.repository)
        return pkg

    def open_package(self, pkg: RepositoryPackage) -> BinaryIO:
        """打开包的字节流，调用方负责关闭"""
        self.cancel.raise_if_cancelled("package fetch")
        try:
            return self.source.open(pkg.location)
        except BuildCancelledError:
            raise
        except (OSError, ChartPackError) as exc:
            raise ResolutionError(f"failed to download package {pkg}: {exc}") from exc

    def fetch(self, query: PackageQuery) -> FetchedPackage:
        """解析并下载到临时文件 ``apk-*.apk``

        失败或取消时删除已写入的部分文件。
        """
        pkg = self.select(query)
        fd, tmp = tempfile.mkstemp(prefix="apk-", suffix=".apk")
        path = Path(tmp)
        try:
            with os.fdopen(fd, "wb") as out, self.open_package(pkg) as stream:
                size = self.source.copy(stream, out, "package fetch")
            if pkg.checksum:
                verify_checksum(path.read_bytes(), pkg)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        logger.info(
            "已下载 %s -> %s (%d 字节)", pkg, path, size,
            extra={"package": str(pkg), "path": str(path)},
        )
        return FetchedPackage(path=path, package=pkg)


def verify_checksum(data: bytes, pkg: RepositoryPackage) -> None:
    """校验 ``C:Q1<base64(sha1)>``，对象为控制段的压缩字节"""
    if not pkg.checksum.startswith("Q1"):
        logger.debug("未知 checksum 格式，跳过: %s", pkg.checksum)
        return
    control = split(data).control_segment
    if control is None:
        raise DecompositionError(f"package {pkg} has no control segment to verify")
    actual = "Q1" + base64.b64encode(hashlib.sha1(control).digest()).decode()  # nosec B324
    if actual != pkg.checksum:
        raise DecompositionError(
            f"checksum mismatch for package {pkg}: expected {pkg.checksum}, got {actual}"
        )
    logger.info("  校验和通过: %s", pkg)


def fetch_package(
    query: PackageQuery,
    repositories: list[str],
    keys: list[str] | None = None,
    *,
    cancel: CancelToken | None = None,
    chunk_size: int = 64 * 1024,
    timeout: int = 60,
) -> FetchedPackage:
    """一次性完成 解析 → 选择 → 下载"""
    cancel = cancel or CancelToken()
    source = PackageSource(chunk_size=chunk_size, timeout=timeout, cancel=cancel)
    fetcher = PackageFetcher(repositories, keys, source=source, cancel=cancel)
    return fetcher.fetch(query)
