"""镜像引用解析 (cg.json)

chart 根目录下的 cg.json 描述 values 文件中各镜像字段的位置:

    {
      "images": {
        "app": {
          "values": {
            "image": {
              "registry": "{{ .registry }}",
              "repository": "{{ .repository }}",
              "tag": "{{ .tag }}"
            }
          }
        }
      }
    }

调用方提供 {镜像 id: 完整引用}，模板渲染后深度合并进 values.yaml，
其余内容（注释、顺序）保持不变。
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any

from chartpack.core.exceptions import PatchError
from chartpack.utils.yaml_io import roundtrip_dump, roundtrip_load

logger = logging.getLogger(__name__)

METADATA_FILENAME = "cg.json"

_PLACEHOLDER_RE = re.compile(r"\{\{\s*\.(\w+)\s*\}\}")


def parse_image_ref(ref: str) -> dict[str, str]:
    """拆分镜像引用 ``[registry/]repository[:tag][@digest]``"""
    rest, _, digest = ref.partition("@")
    tag = ""
    last = rest.rsplit("/", 1)[-1]
    if ":" in last:
        rest, tag = rest.rsplit(":", 1)
    registry, repository = "", rest
    first, sep, remainder = rest.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry, repository = first, remainder
    return {
        "ref": ref,
        "registry": registry,
        "repository": repository,
        "tag": tag,
        "digest": digest,
    }


def _render(template: Any, parts: dict[str, str], image_id: str) -> Any:
    if isinstance(template, dict):
        return {k: _render(v, parts, image_id) for k, v in template.items()}
    if isinstance(template, list):
        return [_render(v, parts, image_id) for v in template]
    if not isinstance(template, str):
        return template

    def repl(m: re.Match) -> str:
        key = m.group(1)
        if key not in parts:
            raise PatchError(
                f"{METADATA_FILENAME}: image {image_id} uses unknown field .{key}",
                path=METADATA_FILENAME,
            )
        return parts[key]

    return _PLACEHOLDER_RE.sub(repl, template)


def _merge(dst: MutableMapping, src: dict[str, Any]) -> None:
    for key, value in src.items():
        current = dst.get(key)
        if isinstance(value, dict) and isinstance(current, MutableMapping):
            _merge(current, value)
        else:
            dst[key] = value


@dataclass
class ImageMapping:
    """cg.json 的解析结果"""

    images: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def parse(cls, raw: bytes) -> ImageMapping:
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise PatchError(f"parsing {METADATA_FILENAME}: {exc}", path=METADATA_FILENAME) from exc
        images = data.get("images") if isinstance(data, dict) else None
        if not isinstance(images, dict):
            raise PatchError(
                f"parsing {METADATA_FILENAME}: missing 'images' mapping",
                path=METADATA_FILENAME,
            )
        return cls(images={
            str(k): (v.get("values") or {}) if isinstance(v, dict) else {}
            for k, v in images.items()
        })

    def resolve(self, refs: dict[str, str], values: bytes) -> bytes:
        """把镜像引用渲染并合并进 values 文件内容"""
        unknown = sorted(set(refs) - set(self.images))
        if unknown:
            raise PatchError(
                f"images {unknown} are not declared in {METADATA_FILENAME}",
                path="values.yaml",
            )
        doc = roundtrip_load(values)
        if doc is None:
            doc = roundtrip_load("{}")
        if not isinstance(doc, MutableMapping):
            raise PatchError("values.yaml is not a mapping", path="values.yaml")

        for image_id, template in self.images.items():
            ref = refs.get(image_id)
            if ref is None:
                continue
            _merge(doc, _render(template, parse_image_ref(ref), image_id))
            logger.info("  镜像已解析: %s -> %s", image_id, ref)
        return roundtrip_dump(doc)
