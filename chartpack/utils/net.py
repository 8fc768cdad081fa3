"""网络工具: 仓库地址判定与 URL 安全校验"""

from __future__ import annotations

from urllib.parse import urlparse

from chartpack.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def is_remote(location: str) -> bool:
    """带 scheme 的地址视为远程仓库，否则按本地路径处理"""
    return "://" in location


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"unsupported URL scheme '{parsed.scheme}'{label}, "
            f"only http/https are allowed: {url}"
        )
