"""内容补丁

补丁文档统一使用 RFC 6902 JSON Patch 编码（add / replace / remove），
按目标文件类型选择应用方式:
- .yaml / .yml: ruamel 往返解析后就地应用，保留注释、键顺序和风格
- 其他: 按 JSON 文档解析后应用，输出紧凑 JSON

任何解码或应用失败都抛出 PatchError，并带上目标文件的相对路径。
"""

from __future__ import annotations

import json
import logging
from typing import Any

import jsonpatch
import jsonpointer
from ruamel.yaml.error import YAMLError

from chartpack.core.exceptions import PatchError
from chartpack.utils.yaml_io import roundtrip_dump, roundtrip_load

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")

_APPLY_ERRORS = (
    jsonpatch.JsonPatchException,
    jsonpointer.JsonPointerException,
    KeyError,
    IndexError,
    TypeError,
)


def is_yaml_path(path: str) -> bool:
    return path.endswith(YAML_SUFFIXES)


def decode_patch(path: str, patch_doc: bytes | str | list[dict[str, Any]]) -> jsonpatch.JsonPatch:
    """解码补丁文档，失败时报告目标文件路径"""
    try:
        if isinstance(patch_doc, list):
            ops = patch_doc
        else:
            ops = json.loads(patch_doc)
        if not isinstance(ops, list):
            raise TypeError(f"patch must be a list of operations, got {type(ops).__name__}")
        return jsonpatch.JsonPatch(ops)
    except (ValueError, TypeError, jsonpatch.JsonPatchException) as exc:
        raise PatchError(f"error decoding patch for file {path}: {exc}", path=path) from exc


def patched_with(path: str, original: bytes, patch_doc: bytes | str | list[dict[str, Any]]) -> bytes:
    """对单个文件内容应用补丁，返回新内容"""
    patch = decode_patch(path, patch_doc)
    if is_yaml_path(path):
        return _apply_yaml(path, original, patch)
    return _apply_json(path, original, patch)


def _apply_yaml(path: str, original: bytes, patch: jsonpatch.JsonPatch) -> bytes:
    try:
        doc = roundtrip_load(original)
    except (YAMLError, UnicodeDecodeError) as exc:
        raise PatchError(f"error parsing YAML file {path}: {exc}", path=path) from exc
    if doc is None:
        doc = roundtrip_load("{}")
    try:
        # 就地修改 CommentedMap，注释信息挂在原对象上
        doc = patch.apply(doc, in_place=True)
    except _APPLY_ERRORS as exc:
        raise PatchError(f"error applying YAML patch to file {path}: {exc}", path=path) from exc
    logger.debug("YAML 补丁已应用: %s", path)
    return roundtrip_dump(doc)


def _apply_json(path: str, original: bytes, patch: jsonpatch.JsonPatch) -> bytes:
    try:
        doc = json.loads(original)
    except ValueError as exc:
        raise PatchError(f"error parsing JSON file {path}: {exc}", path=path) from exc
    try:
        doc = patch.apply(doc)
    except _APPLY_ERRORS as exc:
        raise PatchError(f"error applying JSON patch to file {path}: {exc}", path=path) from exc
    logger.debug("JSON 补丁已应用: %s", path)
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
