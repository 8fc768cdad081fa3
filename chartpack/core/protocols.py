"""领域协议定义

外部协作方的接口契约（Protocol）: 核心流程只依赖抽象，
默认实现与测试替身均可直接满足协议而无需继承。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from chartpack.core.chart.artifact import Artifact


class RegistryClient(Protocol):
    """OCI 仓库推送协议

    只按摘要写入，不创建可变标签。
    """

    def push(self, repository: str, artifact: Artifact) -> str:
        """推送制品，返回清单摘要 ``sha256:...``"""
        ...
