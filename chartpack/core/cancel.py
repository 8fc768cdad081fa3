"""取消令牌

解析与下载可能阻塞在网络或磁盘 IO 上，调用方通过 CancelToken
从其他线程发出取消信号，阻塞操作在每个步骤之间检查。
"""

from __future__ import annotations

import threading

from chartpack.core.exceptions import BuildCancelledError


class CancelToken:
    """基于 threading.Event 的取消信号"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str) -> None:
        """已取消时抛出 BuildCancelledError"""
        if self._event.is_set():
            raise BuildCancelledError(f"{operation} cancelled")
