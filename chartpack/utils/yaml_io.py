"""YAML 读写工具

- load_yaml: PyYAML 安全读取配置类文件（配置、补丁清单）
- roundtrip_load / roundtrip_dump: ruamel.yaml 往返读写，保留注释、
  键顺序和流式风格，用于改写 chart 内的 values 文件
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any

import yaml
from ruamel.yaml import YAML

logger = logging.getLogger(__name__)

# YAML 文件最大大小限制 (10MB)，防止恶意大文件导致内存耗尽
MAX_YAML_SIZE = 10 * 1024 * 1024


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    返回:
        dict: 解析后的字典。文件不存在、为空或内容不是字典时返回空字典

    异常:
        yaml.YAMLError: YAML 格式错误
        OSError: IO 错误
        ValueError: 文件过大（超过 MAX_YAML_SIZE）
    """
    p = Path(path)
    if not p.exists():
        return {}

    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML file too large: {p} ({file_size} bytes), "
            f"limit is {MAX_YAML_SIZE} bytes"
        )

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise
    except OSError as e:
        logger.error("读取文件失败: %s, 错误: %s", path, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result


def _roundtrip_yaml() -> YAML:
    rt = YAML(typ="rt")
    rt.preserve_quotes = True
    rt.width = 4096
    rt.indent(mapping=2, sequence=4, offset=2)
    return rt


def roundtrip_load(content: bytes | str) -> Any:
    """往返模式解析，返回带注释信息的 CommentedMap / CommentedSeq"""
    if isinstance(content, bytes):
        content = content.decode("utf-8")
    return _roundtrip_yaml().load(content)


def roundtrip_dump(data: Any) -> bytes:
    buf = io.StringIO()
    _roundtrip_yaml().dump(data, buf)
    return buf.getvalue().encode("utf-8")
