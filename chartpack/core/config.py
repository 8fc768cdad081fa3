"""集中配置管理

提供统一的配置入口：YAML 文件加载 + 环境变量覆盖 + 编程式覆盖。

架构在边界处一次性解析（调用方覆盖 → 配置默认值 → 静态后备值），
然后显式传入核心流程，核心代码不读取运行环境。
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field

from chartpack.core.exceptions import ConfigError
from chartpack.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

# 未配置任何架构时使用的静态后备值
FALLBACK_ARCH = "aarch64"

ENV_REPOSITORY = "PACKAGE_REPOSITORY"
ENV_PUB_KEY = "PACKAGE_REPOSITORY_PUB_KEY"


@dataclass
class Config:
    """全局配置"""

    # 软件包仓库
    package_repositories: list[str] = field(default_factory=list)
    package_keys: list[str] = field(default_factory=list)
    default_arch: str = ""
    download_chunk_size: int = 64 * 1024
    download_timeout: int = 60

    # OCI 仓库
    registry_insecure: bool = False
    registry_username: str = ""
    registry_password: str = ""

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        for key in ("package_repositories", "package_keys"):
            value = matched.get(key)
            if isinstance(value, str):
                matched[key] = [value]
            elif value is not None and not isinstance(value, list):
                raise ConfigError(f"{path}: '{key}' must be a list of strings")
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def apply_env(self, environ: Mapping[str, str] | None = None) -> Config:
        """叠加环境变量: 仓库地址和公钥路径插入到列表最前"""
        env = os.environ if environ is None else environ
        repo = env.get(ENV_REPOSITORY, "")
        if repo and repo not in self.package_repositories:
            self.package_repositories.insert(0, repo)
        key = env.get(ENV_PUB_KEY, "")
        if key and key not in self.package_keys:
            self.package_keys.insert(0, key)
        return self

    def resolve_arch(self, override: str | None = None) -> str:
        """调用方覆盖 → 配置默认值 → FALLBACK_ARCH"""
        return override or self.default_arch or FALLBACK_ARCH

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置，并叠加环境变量"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path).apply_env()
    logger.info("配置已加载: %s", path)
    return _current
