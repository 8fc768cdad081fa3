"""Chart 发布服务

串联完整流程: 架构解析 → 拉取包 → 构建制品 → 按摘要推送。
每个请求独占自己的临时文件与解包目录，任何退出路径都会释放；
清理失败只记录警告，不覆盖原始错误。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from chartpack.core.apk.fetcher import FetchedPackage, fetch_package
from chartpack.core.apk.models import PackageQuery
from chartpack.core.cancel import CancelToken
from chartpack.core.chart.artifact import Artifact
from chartpack.core.chart.builder import ChartBuilder
from chartpack.core.config import Config
from chartpack.core.exceptions import ConfigError, ValidationError
from chartpack.core.protocols import RegistryClient

logger = logging.getLogger(__name__)


@dataclass
class PublishRequest:
    """一次发布请求"""

    repository: str
    package_name: str
    package_version: str | None = None
    package_arch: str | None = None
    patches: dict[str, Any] = field(default_factory=dict)
    images: dict[str, str] = field(default_factory=dict)


@dataclass
class PublishResult:
    id: str
    digest: str
    name: str
    version: str


class ChartService:
    """拉取 / 构建 / 发布 chart 制品"""

    def __init__(
        self,
        config: Config | None = None,
        registry: RegistryClient | None = None,
    ) -> None:
        if config is None:
            from chartpack.core.config import get_config
            config = get_config()
        self.config = config
        self._registry = registry

    @property
    def registry(self) -> RegistryClient:
        if self._registry is None:
            from chartpack.services.registry_client import OrasRegistryClient
            self._registry = OrasRegistryClient(
                insecure=self.config.registry_insecure,
                username=self.config.registry_username,
                password=self.config.registry_password,
            )
        return self._registry

    def query(self, name: str, version: str | None = None, arch: str | None = None) -> PackageQuery:
        if not name:
            raise ValidationError("package name is required")
        return PackageQuery(name=name, version=version or None, arch=self.config.resolve_arch(arch))

    def fetch(self, query: PackageQuery, cancel: CancelToken | None = None) -> FetchedPackage:
        if not self.config.package_repositories:
            raise ConfigError(
                "package repository is not configured; set package_repositories "
                "or the PACKAGE_REPOSITORY environment variable"
            )
        return fetch_package(
            query,
            self.config.package_repositories,
            self.config.package_keys,
            cancel=cancel,
            chunk_size=self.config.download_chunk_size,
            timeout=self.config.download_timeout,
        )

    def build(
        self,
        query: PackageQuery,
        *,
        patches: dict[str, Any] | None = None,
        images: dict[str, str] | None = None,
        cancel: CancelToken | None = None,
    ) -> Artifact:
        fetched = self.fetch(query, cancel)
        try:
            with ChartBuilder(fetched.path) as builder:
                return builder.build(patches, images)
        finally:
            self._release(fetched)

    def publish(self, request: PublishRequest, cancel: CancelToken | None = None) -> PublishResult:
        """构建并按摘要推送，返回 ``<repository>@<digest>`` 形式的标识"""
        if not request.repository:
            raise ValidationError("target repository is required")
        query = self.query(request.package_name, request.package_version, request.package_arch)
        logger.info(
            "开始发布: %s -> %s (arch=%s)", query.atom(), request.repository, query.arch,
            extra={"package": query.atom(), "repository": request.repository},
        )

        artifact = self.build(
            query, patches=request.patches, images=request.images, cancel=cancel,
        )
        metadata = artifact.metadata()
        digest = self.registry.push(request.repository, artifact)
        result = PublishResult(
            id=f"{request.repository}@{digest}",
            digest=digest,
            name=metadata.name,
            version=metadata.version,
        )
        logger.info(
            "发布完成: %s", result.id,
            extra={"repository": request.repository, "digest": digest},
        )
        return result

    @staticmethod
    def _release(fetched: FetchedPackage) -> None:
        try:
            fetched.cleanup()
        except OSError as exc:
            logger.warning("清理临时包文件失败: %s (%s)", fetched.path, exc)
