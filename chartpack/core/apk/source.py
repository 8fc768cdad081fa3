"""仓库内容读取

仓库地址可以是本地目录，也可以是 http(s) URL。
读取按块进行，块之间检查取消信号。
"""

from __future__ import annotations

import io
import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import BinaryIO

from chartpack.core.cancel import CancelToken
from chartpack.utils.net import is_remote, validate_url_scheme

logger = logging.getLogger(__name__)


class PackageSource:
    """打开仓库中的索引和包文件"""

    def __init__(
        self,
        *,
        chunk_size: int = 64 * 1024,
        timeout: int = 60,
        cancel: CancelToken | None = None,
    ) -> None:
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.cancel = cancel or CancelToken()

    def open(self, location: str) -> BinaryIO:
        """打开可关闭的字节流，调用方负责关闭"""
        if is_remote(location):
            validate_url_scheme(location, context="package repository")
            try:
                return urllib.request.urlopen(location, timeout=self.timeout)  # nosec B310
            except (urllib.error.HTTPError, urllib.error.URLError) as e:
                raise ConnectionError(f"failed to download {location}: {e}") from e
        return open(Path(location), "rb")

    def copy(self, stream: BinaryIO, dest: BinaryIO, operation: str) -> int:
        """分块拷贝，每块之前检查取消信号，返回字节数"""
        total = 0
        while True:
            self.cancel.raise_if_cancelled(operation)
            chunk = stream.read(self.chunk_size)
            if not chunk:
                return total
            dest.write(chunk)
            total += len(chunk)

    def read(self, location: str, operation: str) -> bytes:
        buf = io.BytesIO()
        with self.open(location) as stream:
            self.copy(stream, buf, operation)
        logger.debug("已读取 %s (%d 字节)", location, buf.tell())
        return buf.getvalue()
