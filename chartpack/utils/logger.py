"""chartpack 日志配置

普通文本或结构化 JSON 输出到 stderr，stdout 留给命令输出（清单 JSON、摘要等）。

构建上下文通过 ``extra`` 传入，JSON 格式下作为独立字段输出:

    logger.info("发布完成", extra={"package": "istio-charts-base-1.20.3-r0",
                                   "digest": "sha256:..."})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# 允许通过 extra 附加到 JSON 日志的上下文字段
CONTEXT_FIELDS = ("package", "repository", "digest", "path")

# 传输层库在 DEBUG 以下只输出警告
_NOISY_LOGGERS = ("urllib3", "oras")


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器，已有 handlers 会先被清理

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式
    """
    reset_logging()
    root = logging.getLogger()
    numeric = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric)

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(numeric if numeric <= logging.DEBUG else logging.WARNING)


def reset_logging() -> None:
    """清理根日志器的所有 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
