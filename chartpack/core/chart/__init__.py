"""Helm chart 制品构建

- locator.py: chart 根目录定位
- patch.py: 内容补丁
- images.py: 镜像引用解析
- layer.py: 内容层构建
- artifact.py: 清单与制品
- builder.py: 构建器与端到端入口
"""

from chartpack.core.chart.artifact import Artifact, Manifest
from chartpack.core.chart.builder import BuildConfig, ChartBuilder, build_chart
from chartpack.core.chart.layer import Layer
from chartpack.core.chart.locator import ChartRoot, locate_chart
from chartpack.core.chart.metadata import ChartDescriptor
from chartpack.core.chart.patch import patched_with

__all__ = [
    "Artifact",
    "BuildConfig",
    "ChartBuilder",
    "ChartDescriptor",
    "ChartRoot",
    "Layer",
    "Manifest",
    "build_chart",
    "locate_chart",
    "patched_with",
]
