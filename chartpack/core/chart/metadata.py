"""Chart 描述文件 (Chart.yaml) 模型

规范序列化: 紧凑 JSON，字段按 Helm Metadata 的固定顺序输出，
空字段省略，annotations 键排序。相同输入得到相同字节。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import yaml

from chartpack.core.exceptions import ManifestError

CHART_FILENAME = "Chart.yaml"

# Chart.yaml 缺少 version 时的占位版本
DEFAULT_VERSION = "0.0.0"

# (属性名, 序列化键) 按输出顺序排列
_FIELDS = (
    ("name", "name"),
    ("home", "home"),
    ("sources", "sources"),
    ("version", "version"),
    ("description", "description"),
    ("keywords", "keywords"),
    ("maintainers", "maintainers"),
    ("icon", "icon"),
    ("api_version", "apiVersion"),
    ("condition", "condition"),
    ("tags", "tags"),
    ("app_version", "appVersion"),
    ("deprecated", "deprecated"),
    ("annotations", "annotations"),
    ("kube_version", "kubeVersion"),
    ("dependencies", "dependencies"),
    ("type", "type"),
)


def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ManifestError(
            f"error parsing {CHART_FILENAME}: '{key}' must be a list, "
            f"got {type(value).__name__}"
        )
    return value


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ManifestError(
            f"error parsing {CHART_FILENAME}: '{key}' must be a mapping, "
            f"got {type(value).__name__}"
        )
    return value


class _ChartLoader(yaml.SafeLoader):
    """数字标量保留原文，appVersion: 1.10 不会变成 1.1"""


def _scalar_text(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> str:
    return loader.construct_scalar(node)


_ChartLoader.add_constructor("tag:yaml.org,2002:int", _scalar_text)
_ChartLoader.add_constructor("tag:yaml.org,2002:float", _scalar_text)


@dataclass
class ChartDescriptor:
    """Chart 元数据"""

    name: str = ""
    home: str = ""
    sources: list[str] = field(default_factory=list)
    version: str = DEFAULT_VERSION
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    maintainers: list[dict[str, Any]] = field(default_factory=list)
    icon: str = ""
    api_version: str = ""
    condition: str = ""
    tags: str = ""
    app_version: str = ""
    deprecated: bool = False
    annotations: dict[str, str] = field(default_factory=dict)
    kube_version: str = ""
    dependencies: list[dict[str, Any]] = field(default_factory=list)
    type: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChartDescriptor:
        return cls(
            name=_str(data.get("name")),
            home=_str(data.get("home")),
            sources=[_str(s) for s in _list(data, "sources")],
            version=_str(data.get("version")) or DEFAULT_VERSION,
            description=_str(data.get("description")),
            keywords=[_str(k) for k in _list(data, "keywords")],
            maintainers=list(_list(data, "maintainers")),
            icon=_str(data.get("icon")),
            api_version=_str(data.get("apiVersion")),
            condition=_str(data.get("condition")),
            tags=_str(data.get("tags")),
            app_version=_str(data.get("appVersion")),
            deprecated=bool(data.get("deprecated", False)),
            annotations={
                _str(k): _str(v) for k, v in _mapping(data, "annotations").items()
            },
            kube_version=_str(data.get("kubeVersion")),
            dependencies=list(_list(data, "dependencies")),
            type=_str(data.get("type")),
        )

    @classmethod
    def from_yaml(cls, content: bytes | str) -> ChartDescriptor:
        """解析 Chart.yaml 内容"""
        try:
            data = yaml.load(content, Loader=_ChartLoader)
        except yaml.YAMLError as exc:
            raise ManifestError(f"error parsing {CHART_FILENAME}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestError(
                f"error parsing {CHART_FILENAME}: expected a mapping, "
                f"got {type(data).__name__}"
            )
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """按固定字段顺序输出，省略空值"""
        out: dict[str, Any] = {}
        for attr, key in _FIELDS:
            value = getattr(self, attr)
            if not value:
                continue
            if attr == "annotations":
                value = dict(sorted(value.items()))
            out[key] = value
        return out

    def to_json(self) -> bytes:
        """规范 JSON 序列化，用作制品的配置对象"""
        try:
            return json.dumps(
                self.to_dict(), separators=(",", ":"), ensure_ascii=False,
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ManifestError(f"failed to serialize chart descriptor: {exc}") from exc
