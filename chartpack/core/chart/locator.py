"""Chart 根目录定位

扫描数据段的全部条目名，``<dir>/Chart.yaml`` 且 <dir> 不含路径分隔符时
确定 chart 根目录；更深层的 Chart.yaml（子 chart）不计入。
根目录下若存在 cg.json，解析为 ImageMapping 随结果一并返回。
"""

from __future__ import annotations

import io
import logging
import tarfile
import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from typing import IO

from chartpack.core.chart.images import METADATA_FILENAME, ImageMapping
from chartpack.core.chart.metadata import CHART_FILENAME
from chartpack.core.exceptions import ChartNotFoundError, DecompositionError

logger = logging.getLogger(__name__)

_TAR_ERRORS = (tarfile.TarError, zlib.error, EOFError, OSError)


@dataclass
class ChartRoot:
    """定位结果: 根目录名 + 数据段（压缩）+ 可选镜像映射"""

    name: str
    data: bytes
    mapping: ImageMapping | None = None

    def entries(self) -> Iterator[tuple[tarfile.TarInfo, IO[bytes] | None]]:
        """流式遍历数据段条目，文件内容只在当前迭代步内有效"""
        yield from iter_entries(self.data)

    def read(self, rel: str) -> bytes | None:
        """读取根目录下某个相对路径文件的内容"""
        target = f"{self.name}/{rel}"
        for info, f in self.entries():
            if info.name == target and f is not None:
                return f.read()
        return None


def iter_entries(data: bytes) -> Iterator[tuple[tarfile.TarInfo, IO[bytes] | None]]:
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r|gz") as tf:
            for info in tf:
                yield info, tf.extractfile(info) if info.isfile() else None
    except _TAR_ERRORS as exc:
        raise DecompositionError(f"error reading package data: {exc}") from exc


def locate_chart(data: bytes) -> ChartRoot:
    """在数据段中定位唯一的顶层 Chart.yaml

    Raises:
        ChartNotFoundError: 没有顶层 Chart.yaml，或存在多个
        DecompositionError: 数据段无法解压
    """
    roots: list[str] = []
    metadata_files: dict[str, bytes] = {}
    suffix = "/" + CHART_FILENAME

    for info, f in iter_entries(data):
        name = info.name
        if name.endswith(suffix):
            directory = name[: -len(suffix)]
            if directory and "/" not in directory and directory not in roots:
                roots.append(directory)
            continue
        directory, sep, base = name.partition("/")
        if sep and base == METADATA_FILENAME and f is not None:
            metadata_files[directory] = f.read()

    if not roots:
        raise ChartNotFoundError(f"package is missing chart descriptor ({CHART_FILENAME})")
    if len(roots) > 1:
        raise ChartNotFoundError(
            f"package contains more than one top-level {CHART_FILENAME}: {roots}"
        )

    root = roots[0]
    mapping = None
    if root in metadata_files:
        mapping = ImageMapping.parse(metadata_files[root])
        logger.info("已解析 %s/%s: %d 个镜像", root, METADATA_FILENAME, len(mapping.images))
    logger.info("chart 根目录: %s", root)
    return ChartRoot(name=root, data=data, mapping=mapping)
