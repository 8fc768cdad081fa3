"""基于 oras 的 OCI 仓库推送

上传配置层与内容层 blob 后，以清单摘要为引用 PUT 原始清单字节，
不打任何标签。registry 连接可在并发构建之间复用。
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import requests
from oras.provider import Registry

from chartpack.core.chart.artifact import Artifact
from chartpack.core.chart.layer import Layer
from chartpack.core.exceptions import RegistryError

logger = logging.getLogger(__name__)


class OrasRegistryClient:
    """RegistryClient 的默认实现"""

    def __init__(
        self,
        *,
        insecure: bool = False,
        username: str = "",
        password: str = "",
    ) -> None:
        self._registry = Registry(insecure=insecure)
        if username:
            self._registry.set_basic_auth(username, password)

    def push(self, repository: str, artifact: Artifact) -> str:
        try:
            container = self._registry.get_container(repository)
        except ValueError as exc:
            raise RegistryError(f"failed to parse reference {repository}: {exc}") from exc

        digest = artifact.digest()
        try:
            with tempfile.TemporaryDirectory(prefix="chartpack-push-") as tmp:
                for layer in (artifact.config_layer(), *artifact.layers()):
                    self._upload_blob(Path(tmp), container, layer)
            url = f"{self._registry.prefix}://{container.manifest_url(digest)}"
            resp = self._registry.do_request(
                url, "PUT",
                data=artifact.raw_manifest(),
                headers={"Content-Type": artifact.media_type()},
            )
        except (requests.RequestException, OSError, ValueError) as exc:
            raise RegistryError(f"failed to push to registry {repository}: {exc}") from exc

        if resp.status_code not in (200, 201):
            raise RegistryError(
                f"failed to push manifest to {repository}: "
                f"HTTP {resp.status_code} {resp.text[:200]}"
            )
        logger.info("已推送: %s@%s", repository, digest, extra={"repository": repository, "digest": digest})
        return digest

    def _upload_blob(self, tmp: Path, container: object, layer: Layer) -> None:
        blob = tmp / layer.digest.replace(":", "-")
        blob.write_bytes(layer.content)
        resp = self._registry.upload_blob(
            str(blob), container,
            {"mediaType": layer.media_type, "digest": layer.digest, "size": layer.size},
        )
        if resp.status_code not in (200, 201, 202):
            raise RegistryError(
                f"failed to upload blob {layer.digest}: HTTP {resp.status_code}"
            )
        logger.debug("  blob 已上传: %s (%d 字节)", layer.digest, layer.size)
