"""服务容器: 统一依赖注入

CLI 通过 get_container() 获取服务，同一容器内的实例共享状态
（例如 registry 连接）。

用法:
    container = ServiceContainer()
    svc = container.charts               # 懒加载

    cfg = Config.from_file("my_config.yml")
    container = ServiceContainer(config=cfg)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chartpack.core.config import Config
    from chartpack.core.protocols import RegistryClient
    from chartpack.services.chart_service import ChartService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(self, config: Config | None = None) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from chartpack.core.config import get_config
            config = get_config()
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    @property
    def registry(self) -> RegistryClient:
        if "registry" not in self._instances:
            from chartpack.services.registry_client import OrasRegistryClient
            self._instances["registry"] = OrasRegistryClient(
                insecure=self._config.registry_insecure,
                username=self._config.registry_username,
                password=self._config.registry_password,
            )
        return self._instances["registry"]  # type: ignore[return-value]

    @property
    def charts(self) -> ChartService:
        if "charts" not in self._instances:
            from chartpack.services.chart_service import ChartService
            self._instances["charts"] = ChartService(
                config=self._config, registry=self.registry,
            )
        return self._instances["charts"]  # type: ignore[return-value]

    def set_registry(self, registry: RegistryClient) -> None:
        """替换 registry 实现（测试或自定义传输）"""
        self._instances["registry"] = registry
        self._instances.pop("charts", None)


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
