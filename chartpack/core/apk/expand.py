"""包数据流拆分

apk 包（以及 APKINDEX.tar.gz）是若干个独立 gzip 成员的拼接:
  [签名段] [控制段] 数据段
本模块按 gzip 成员边界切分，签名段与控制段不做解释，
最后一段视为数据段。包体积较小，整体缓冲到内存。
"""

from __future__ import annotations

import io
import logging
import tarfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO

from chartpack.core.exceptions import DecompositionError

logger = logging.getLogger(__name__)

# wbits=16+MAX_WBITS: 仅接受 gzip 封装
_GZIP_WBITS = 16 + zlib.MAX_WBITS


@dataclass(frozen=True)
class PackageStream:
    """按顺序排列的压缩段"""

    segments: tuple[bytes, ...]

    @property
    def data_segment(self) -> bytes:
        return self.segments[-1]

    @property
    def control_segment(self) -> bytes | None:
        if len(self.segments) < 2:
            return None
        return self.segments[-2]

    @property
    def signature_segment(self) -> bytes | None:
        if len(self.segments) < 3:
            return None
        return self.segments[0]


def split(data: bytes) -> PackageStream:
    """按 gzip 成员边界切分字节流"""
    segments: list[bytes] = []
    offset = 0
    while offset < len(data):
        d = zlib.decompressobj(_GZIP_WBITS)
        try:
            d.decompress(data[offset:])
        except zlib.error as exc:
            raise DecompositionError(
                f"failed to decompose package stream: segment {len(segments)} "
                f"at offset {offset}: {exc}"
            ) from exc
        if not d.eof:
            raise DecompositionError(
                f"failed to decompose package stream: segment {len(segments)} "
                f"at offset {offset} is truncated"
            )
        end = len(data) - len(d.unused_data)
        segments.append(data[offset:end])
        offset = end

    if not segments:
        raise DecompositionError("failed to decompose package stream: stream is empty")
    logger.debug("包数据流切分为 %d 段", len(segments))
    return PackageStream(tuple(segments))


def split_stream(stream: BinaryIO) -> PackageStream:
    try:
        data = stream.read()
    except OSError as exc:
        raise DecompositionError(f"failed to decompose package stream: {exc}") from exc
    return split(data)


def read_members(segment: bytes) -> dict[str, bytes]:
    """读取小型段（签名段、控制段、索引段）中的全部常规文件

    这些段是不带结束块的 tar 片段，tarfile 按 EOF 处理即可。
    """
    members: dict[str, bytes] = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(segment), mode="r:gz") as tf:
            for info in tf:
                if not info.isfile():
                    continue
                f = tf.extractfile(info)
                if f is not None:
                    members[info.name] = f.read()
    except (tarfile.TarError, zlib.error, EOFError, OSError) as exc:
        raise DecompositionError(f"failed to decompose package stream: {exc}") from exc
    return members
