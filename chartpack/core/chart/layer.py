"""内容层构建

流式遍历数据段，只保留 chart 根目录下的条目:
- 相对路径位于排除目录 (var/) 下的条目一律丢弃
- Chart.yaml、有补丁的文件、需要解析镜像的 values.yaml 先整体缓冲，
  依次应用 补丁 → 镜像解析，Chart.yaml 再重新解析为描述对象
- 其余条目原样拷贝

输出为 gzip(mtime=0) 压缩的 tar，相同输入得到相同摘要。
"""

from __future__ import annotations

import copy
import gzip
import hashlib
import io
import logging
import tarfile
from dataclasses import dataclass
from typing import Any

from chartpack.core.chart.locator import ChartRoot
from chartpack.core.chart.metadata import CHART_FILENAME, ChartDescriptor
from chartpack.core.chart.patch import patched_with
from chartpack.core.exceptions import ChartNotFoundError, DecompositionError, PatchError

logger = logging.getLogger(__name__)

CHART_LAYER_MEDIA_TYPE = "application/vnd.cncf.helm.chart.content.v1.tar+gzip"

# 运行期状态目录，不进入制品
EXCLUDED_DIR = "var"

VALUES_FILENAME = "values.yaml"


def sha256_digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class Layer:
    """制品中的一个 blob

    digest 为存储字节（可能压缩）的哈希，diff_id 为未压缩字节的哈希。
    """

    content: bytes
    media_type: str
    digest: str
    diff_id: str

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_tar(cls, tar_bytes: bytes, media_type: str) -> Layer:
        compressed = gzip.compress(tar_bytes, mtime=0)
        return cls(
            content=compressed,
            media_type=media_type,
            digest=sha256_digest(compressed),
            diff_id=sha256_digest(tar_bytes),
        )

    @classmethod
    def from_static(cls, raw: bytes, media_type: str) -> Layer:
        """未压缩的 blob，digest 与 diff_id 相同"""
        digest = sha256_digest(raw)
        return cls(content=raw, media_type=media_type, digest=digest, diff_id=digest)

    def uncompressed(self) -> bytes:
        if self.digest == self.diff_id:
            return self.content
        return gzip.decompress(self.content)


def _is_excluded(rel: str) -> bool:
    return rel == EXCLUDED_DIR or rel.startswith(EXCLUDED_DIR + "/")


def build_chart_layer(
    root: ChartRoot,
    patches: dict[str, Any] | None = None,
    images: dict[str, str] | None = None,
) -> tuple[Layer, ChartDescriptor]:
    """重建 chart 内容层，同时得到最终的 Chart 描述对象

    参数:
        root: locate_chart 的结果
        patches: {相对路径: 补丁文档}
        images: {镜像 id: 镜像引用}，仅在存在 cg.json 时生效

    Raises:
        PatchError: 补丁解码或应用失败
        ChartNotFoundError: 重写过程中没有遇到 Chart.yaml
    """
    patches = patches or {}
    # 没有镜像清单时不改写 values.yaml
    mapping = root.mapping if images else None
    prefix = root.name + "/"
    metadata: ChartDescriptor | None = None
    applied: set[str] = set()

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as out:
        for info, f in root.entries():
            if info.name.rstrip("/") == root.name and info.isdir():
                out.addfile(copy.copy(info))
                continue
            if not info.name.startswith(prefix):
                continue
            rel = info.name[len(prefix):].rstrip("/")
            if not rel or _is_excluded(rel):
                continue

            needs_patch = rel in patches
            needs_resolve = mapping is not None and rel == VALUES_FILENAME
            if f is None or not (needs_patch or needs_resolve or rel == CHART_FILENAME):
                try:
                    out.addfile(info, f)
                except (tarfile.TarError, OSError) as exc:
                    raise DecompositionError(f"error copying {info.name}: {exc}") from exc
                continue

            content = f.read()
            if needs_patch:
                content = patched_with(rel, content, patches[rel])
                applied.add(rel)
                logger.info("  已应用补丁: %s", rel)
            if mapping is not None and needs_resolve:
                content = mapping.resolve(images or {}, content)
            if rel == CHART_FILENAME:
                metadata = ChartDescriptor.from_yaml(content)

            new_info = copy.copy(info)
            new_info.size = len(content)
            out.addfile(new_info, io.BytesIO(content))

    missing = sorted(p for p in set(patches) - applied if not _is_excluded(p))
    if missing:
        raise PatchError(f"patch targets not found in chart: {missing}", path=missing[0])
    if metadata is None:
        raise ChartNotFoundError("chart descriptor not found after rewrite")

    layer = Layer.from_tar(buf.getvalue(), CHART_LAYER_MEDIA_TYPE)
    logger.info(
        "内容层已生成: %s (%d 字节, chart=%s-%s)",
        layer.digest, layer.size, metadata.name, metadata.version,
    )
    return layer, metadata
