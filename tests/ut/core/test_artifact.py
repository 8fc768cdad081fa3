"""OCI 制品与清单测试"""

import hashlib
import json

import pytest

from chartpack.core.chart.artifact import (
    ANNOTATION_DESCRIPTION,
    ANNOTATION_SOURCE,
    ANNOTATION_TITLE,
    ANNOTATION_VERSION,
    CONFIG_MEDIA_TYPE,
    OCI_MANIFEST_MEDIA_TYPE,
    Artifact,
    build_annotations,
)
from chartpack.core.chart.layer import CHART_LAYER_MEDIA_TYPE, Layer
from chartpack.core.chart.metadata import ChartDescriptor
from chartpack.core.exceptions import ManifestError
from tests.apk_factory import tar_bytes


def _artifact(**fields) -> Artifact:
    meta = ChartDescriptor(name="base", version="1.20.3", description="Istio base", **fields)
    layer = Layer.from_tar(tar_bytes({"base/Chart.yaml": b"name: base\n"}), CHART_LAYER_MEDIA_TYPE)
    return Artifact(meta, layer)


class TestManifest:
    def test_shape(self) -> None:
        artifact = _artifact(sources=["https://github.com/istio/istio"])
        manifest = json.loads(artifact.raw_manifest())
        assert list(manifest) == ["schemaVersion", "mediaType", "config", "layers", "annotations"]
        assert manifest["schemaVersion"] == 2
        assert manifest["mediaType"] == OCI_MANIFEST_MEDIA_TYPE
        assert manifest["config"]["mediaType"] == CONFIG_MEDIA_TYPE
        assert list(manifest["config"]) == ["mediaType", "size", "digest"]
        assert [d["mediaType"] for d in manifest["layers"]] == [CHART_LAYER_MEDIA_TYPE]
        assert manifest["annotations"] == {
            ANNOTATION_DESCRIPTION: "Istio base",
            ANNOTATION_SOURCE: "https://github.com/istio/istio",
            ANNOTATION_TITLE: "base",
            ANNOTATION_VERSION: "1.20.3",
        }

    def test_digest_and_size(self) -> None:
        artifact = _artifact()
        raw = artifact.raw_manifest()
        assert artifact.digest() == "sha256:" + hashlib.sha256(raw).hexdigest()
        assert artifact.size() == len(raw)
        assert artifact.media_type() == OCI_MANIFEST_MEDIA_TYPE

    def test_deterministic(self) -> None:
        assert _artifact().raw_manifest() == _artifact().raw_manifest()

    def test_config_is_canonical_metadata(self) -> None:
        artifact = _artifact()
        assert artifact.raw_config_file() == artifact.metadata().to_json()
        assert artifact.config_name() == artifact.config_layer().digest

    def test_config_name_is_config_digest(self) -> None:
        artifact = _artifact()
        digest = hashlib.sha256(artifact.raw_config_file()).hexdigest()
        assert artifact.config_name() == f"sha256:{digest}"
        assert artifact.config_name() == json.loads(artifact.raw_manifest())["config"]["digest"]
        assert artifact.config_name() == artifact.manifest().config.digest

    def test_manifest_is_a_copy(self) -> None:
        artifact = _artifact()
        manifest = artifact.manifest()
        manifest.annotations["x"] = "y"
        assert "x" not in artifact.manifest().annotations


class TestAnnotations:
    def test_chart_annotations_do_not_override(self) -> None:
        meta = ChartDescriptor(
            name="base", version="1.0.0",
            annotations={ANNOTATION_TITLE: "spoofed", "example.com/team": "mesh"},
        )
        annotations = build_annotations(meta)
        assert annotations[ANNOTATION_TITLE] == "base"
        assert annotations["example.com/team"] == "mesh"

    def test_empty_first_source_omitted(self) -> None:
        meta = ChartDescriptor(name="base", sources=["", "https://example.com"])
        assert ANNOTATION_SOURCE not in build_annotations(meta)

    def test_no_description(self) -> None:
        meta = ChartDescriptor(name="base")
        assert ANNOTATION_DESCRIPTION not in build_annotations(meta)
        assert build_annotations(meta)[ANNOTATION_VERSION] == "0.0.0"


class TestLayerLookup:
    def test_by_digest_and_diff_id(self) -> None:
        artifact = _artifact()
        content = artifact.layers()[0]
        assert artifact.layer_by_digest(content.digest) is content
        assert artifact.layer_by_diff_id(content.diff_id) is content
        config = artifact.config_layer()
        assert artifact.layer_by_digest(config.digest) is config
        assert artifact.layer_by_diff_id(config.diff_id) is config

    def test_missing(self) -> None:
        artifact = _artifact()
        with pytest.raises(ManifestError, match="layer with digest sha256:00 not found"):
            artifact.layer_by_digest("sha256:00")
        with pytest.raises(ManifestError, match="layer with diff ID"):
            artifact.layer_by_diff_id("sha256:00")
