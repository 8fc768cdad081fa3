"""仓库索引签名校验

签名段中的条目名为 ``.SIGN.RSA.<key>``（SHA-1）或 ``.SIGN.RSA256.<key>``
（SHA-256），内容是对紧随其后那一段压缩字节的 RSA PKCS#1 v1.5 签名。
<key> 与受信公钥文件的 basename 对应。
"""

from __future__ import annotations

import logging
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from chartpack.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

_SIGN_PREFIXES = (
    (".SIGN.RSA256.", hashes.SHA256),
    (".SIGN.RSA.", hashes.SHA1),
)


def load_public_keys(paths: list[str]) -> dict[str, rsa.RSAPublicKey]:
    """加载 PEM 公钥，返回 {basename: key}"""
    keys: dict[str, rsa.RSAPublicKey] = {}
    for p in paths:
        path = Path(p)
        try:
            key = serialization.load_pem_public_key(path.read_bytes())
        except (OSError, ValueError) as exc:
            raise ConfigError(f"failed to load repository public key {p}: {exc}") from exc
        if not isinstance(key, rsa.RSAPublicKey):
            raise ConfigError(f"repository public key {p} is not an RSA key")
        keys[path.name] = key
    return keys


def signature_entries(members: dict[str, bytes]) -> list[tuple[str, type, bytes]]:
    """从签名段成员中提取 (key 名, 哈希算法, 签名)"""
    result = []
    for name, sig in members.items():
        for prefix, algo in _SIGN_PREFIXES:
            if name.startswith(prefix):
                result.append((name[len(prefix):], algo, sig))
                break
    return result


def verify(
    members: dict[str, bytes],
    signed: bytes,
    keys: dict[str, rsa.RSAPublicKey],
) -> str | None:
    """用任一受信公钥校验签名，成功返回 key 名，否则返回 None"""
    for key_name, algo, sig in signature_entries(members):
        key = keys.get(key_name)
        if key is None:
            logger.debug("签名 key 不受信，跳过: %s", key_name)
            continue
        try:
            key.verify(sig, signed, padding.PKCS1v15(), algo())
        except InvalidSignature:
            logger.warning("签名校验失败: %s", key_name)
            continue
        return key_name
    return None
