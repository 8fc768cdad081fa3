"""chartpack 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from chartpack import __version__
from chartpack.services.container import get_container
from chartpack.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


def _parse_kv_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """解析 key=value 参数对"""
    result: dict[str, str] = {}
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            result[k.strip()] = v.strip()
    return result


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default="configs/default.yml", help="配置文件路径")
def main(config_path: str) -> None:
    """chartpack - 将 APK 包中的 Helm chart 发布为 OCI 制品"""
    setup_logging(
        level=os.getenv("CHARTPACK_LOG_LEVEL", "INFO"),
        json_output=os.getenv("CHARTPACK_LOG_JSON", "") == "1",
    )
    from chartpack.core.config import init_config
    from chartpack.services.container import reset_container
    init_config(config_path)
    reset_container()


# 注册各领域子命令
from chartpack.cli.cmd_chart import register as _reg_chart  # noqa: E402

_reg_chart(main)
