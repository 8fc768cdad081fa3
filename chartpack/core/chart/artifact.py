"""OCI 制品与清单

Artifact 持有一份清单、配置层和唯一的内容层，构造时一次性建立
digest / diff_id 双键索引，之后不再修改。

清单 JSON 字段顺序: schemaVersion, mediaType, config, layers, annotations；
描述符字段顺序: mediaType, size, digest。
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field

from chartpack.core.chart.layer import Layer, sha256_digest
from chartpack.core.chart.metadata import ChartDescriptor
from chartpack.core.exceptions import ManifestError

OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
CONFIG_MEDIA_TYPE = "application/vnd.cncf.helm.config.v1+json"

ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_VERSION = "org.opencontainers.image.version"
ANNOTATION_DESCRIPTION = "org.opencontainers.image.description"
ANNOTATION_SOURCE = "org.opencontainers.image.source"


@dataclass(frozen=True)
class Descriptor:
    media_type: str
    size: int
    digest: str

    @classmethod
    def of(cls, layer: Layer) -> Descriptor:
        return cls(media_type=layer.media_type, size=layer.size, digest=layer.digest)

    def to_dict(self) -> dict:
        return {"mediaType": self.media_type, "size": self.size, "digest": self.digest}


@dataclass(frozen=True)
class Manifest:
    config: Descriptor
    layers: tuple[Descriptor, ...]
    annotations: dict[str, str] = field(default_factory=dict)
    schema_version: int = 2
    media_type: str = OCI_MANIFEST_MEDIA_TYPE

    def to_dict(self) -> dict:
        out: dict = {
            "schemaVersion": self.schema_version,
            "mediaType": self.media_type,
            "config": self.config.to_dict(),
            "layers": [d.to_dict() for d in self.layers],
        }
        if self.annotations:
            out["annotations"] = dict(sorted(self.annotations.items()))
        return out

    def to_json(self) -> bytes:
        try:
            return json.dumps(
                self.to_dict(), separators=(",", ":"), ensure_ascii=False,
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ManifestError(f"failed to serialize manifest: {exc}") from exc


def build_annotations(metadata: ChartDescriptor) -> dict[str, str]:
    """由 Chart 元数据派生注解，chart 自带注解不覆盖标准注解"""
    annotations: dict[str, str] = {}
    if metadata.name:
        annotations[ANNOTATION_TITLE] = metadata.name
    if metadata.version:
        annotations[ANNOTATION_VERSION] = metadata.version
    if metadata.description:
        annotations[ANNOTATION_DESCRIPTION] = metadata.description
    if metadata.sources and metadata.sources[0]:
        annotations[ANNOTATION_SOURCE] = metadata.sources[0]
    for key, value in metadata.annotations.items():
        annotations.setdefault(key, value)
    return annotations


class Artifact:
    """Helm chart 的 OCI 制品"""

    def __init__(self, metadata: ChartDescriptor, content: Layer) -> None:
        self._metadata = copy.deepcopy(metadata)
        self._config = Layer.from_static(metadata.to_json(), CONFIG_MEDIA_TYPE)
        self._content = content
        self._manifest = Manifest(
            config=Descriptor.of(self._config),
            layers=(Descriptor.of(content),),
            annotations=build_annotations(metadata),
        )
        self._raw_manifest = self._manifest.to_json()
        self._by_digest = {
            self._config.digest: self._config,
            content.digest: content,
        }
        self._by_diff_id = {
            self._config.diff_id: self._config,
            content.diff_id: content,
        }

    def media_type(self) -> str:
        return self._manifest.media_type

    def digest(self) -> str:
        """清单的 sha256 摘要"""
        return sha256_digest(self._raw_manifest)

    def size(self) -> int:
        return len(self._raw_manifest)

    def manifest(self) -> Manifest:
        return copy.deepcopy(self._manifest)

    def raw_manifest(self) -> bytes:
        return self._raw_manifest

    def config_name(self) -> str:
        return self._config.digest

    def config_layer(self) -> Layer:
        return self._config

    def raw_config_file(self) -> bytes:
        return self._config.content

    def metadata(self) -> ChartDescriptor:
        return copy.deepcopy(self._metadata)

    def layers(self) -> list[Layer]:
        return [self._content]

    def layer_by_digest(self, digest: str) -> Layer:
        try:
            return self._by_digest[digest]
        except KeyError:
            raise ManifestError(f"layer with digest {digest} not found") from None

    def layer_by_diff_id(self, diff_id: str) -> Layer:
        try:
            return self._by_diff_id[diff_id]
        except KeyError:
            raise ManifestError(f"layer with diff ID {diff_id} not found") from None
