"""Chart 构建器

两阶段使用:
  1. ChartBuilder(path) 校验包文件并创建独占的临时解包目录
  2. ensure_initialized() 切分包、落盘数据段、定位 chart 根目录；
     可重复调用、可并发调用，由互斥锁保护，成功结果或首个错误被永久缓存

临时目录必须通过 cleanup()（或 with 语句）显式释放。

用法:
    with ChartBuilder("/tmp/apk-xxx.apk") as builder:
        meta = builder.metadata()
        artifact = builder.build(patches={"values.yaml": b"[...]"})
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from chartpack.core.apk.expand import split_stream
from chartpack.core.apk.fetcher import fetch_package
from chartpack.core.apk.models import PackageQuery
from chartpack.core.cancel import CancelToken
from chartpack.core.config import FALLBACK_ARCH
from chartpack.core.chart.artifact import Artifact
from chartpack.core.chart.layer import build_chart_layer
from chartpack.core.chart.locator import ChartRoot, locate_chart
from chartpack.core.chart.metadata import CHART_FILENAME, ChartDescriptor
from chartpack.core.exceptions import (
    ChartNotFoundError,
    ChartPackError,
    DecompositionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DATA_SEGMENT_FILENAME = "data.tar.gz"


class ChartBuilder:
    """从单个 apk 包文件构建 Helm OCI 制品"""

    def __init__(self, package_path: str | Path) -> None:
        path = Path(package_path)
        if not path.exists():
            raise ValidationError(f"invalid package file path: {path} does not exist")
        if path.is_dir():
            raise ValidationError(f"package file path is a directory, not a file: {path}")
        self.package_path = path
        self.extract_dir = Path(tempfile.mkdtemp(prefix="chartpack-extract-"))
        self._lock = threading.Lock()
        self._outcome: ChartRoot | ChartPackError | None = None
        self._metadata: ChartDescriptor | None = None

    def __enter__(self) -> ChartBuilder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        try:
            self.cleanup()
        except OSError as exc:
            logger.warning("清理临时目录失败: %s (%s)", self.extract_dir, exc)

    def cleanup(self) -> None:
        """删除临时解包目录，重复调用无副作用"""
        if self.extract_dir.exists():
            shutil.rmtree(self.extract_dir)
            logger.debug("已清理临时目录: %s", self.extract_dir)

    def ensure_initialized(self) -> ChartRoot:
        """切分包并定位 chart，只执行一次"""
        with self._lock:
            if self._outcome is None:
                try:
                    self._outcome = self._initialize()
                except ChartPackError as exc:
                    self._outcome = exc
            if isinstance(self._outcome, ChartPackError):
                raise self._outcome
            return self._outcome

    def _initialize(self) -> ChartRoot:
        try:
            with open(self.package_path, "rb") as f:
                stream = split_stream(f)
            data = stream.data_segment
            (self.extract_dir / DATA_SEGMENT_FILENAME).write_bytes(data)
        except OSError as exc:
            raise DecompositionError(f"failed to decompose package stream: {exc}") from exc
        logger.info(
            "包已切分: %s (%d 段, 数据段 %d 字节)",
            self.package_path.name, len(stream.segments), len(data),
        )
        return locate_chart(data)

    def metadata(self) -> ChartDescriptor:
        """读取未打补丁的 Chart.yaml 元数据"""
        root = self.ensure_initialized()
        with self._lock:
            if self._metadata is None:
                content = root.read(CHART_FILENAME)
                if content is None:
                    raise ChartNotFoundError(f"package is missing chart descriptor ({CHART_FILENAME})")
                self._metadata = ChartDescriptor.from_yaml(content)
            return self._metadata

    def build(
        self,
        patches: dict[str, Any] | None = None,
        images: dict[str, str] | None = None,
    ) -> Artifact:
        """生成制品: 内容层 + 由（打补丁后的）Chart.yaml 派生的配置与清单"""
        root = self.ensure_initialized()
        layer, metadata = build_chart_layer(root, patches, images)
        artifact = Artifact(metadata, layer)
        logger.info("制品已生成: %s-%s %s", metadata.name, metadata.version, artifact.digest())
        return artifact


@dataclass
class BuildConfig:
    """一次端到端构建的输入"""

    repositories: list[str] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
    arch: str = ""
    version: str | None = None
    patches: dict[str, Any] = field(default_factory=dict)
    images: dict[str, str] = field(default_factory=dict)
    chunk_size: int = 64 * 1024
    timeout: int = 60


def build_chart(
    name: str,
    config: BuildConfig,
    cancel: CancelToken | None = None,
) -> Artifact:
    """拉取 → 构建，所有临时资源在返回前释放"""
    query = PackageQuery(name=name, version=config.version, arch=config.arch or FALLBACK_ARCH)
    fetched = fetch_package(
        query, config.repositories, config.keys,
        cancel=cancel, chunk_size=config.chunk_size, timeout=config.timeout,
    )
    try:
        with ChartBuilder(fetched.path) as builder:
            return builder.build(config.patches, config.images)
    finally:
        fetched.cleanup()
