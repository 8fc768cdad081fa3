"""CLI 命令测试"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

import chartpack.core.config as cfgmod
from chartpack.cli import main
from chartpack.services.container import get_container, reset_container
from chartpack.utils.logger import reset_logging
from tests.apk_factory import RepoBuilder, chart_files, make_apk


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(cfgmod, "_current", None)
    monkeypatch.delenv("PACKAGE_REPOSITORY", raising=False)
    monkeypatch.delenv("PACKAGE_REPOSITORY_PUB_KEY", raising=False)
    monkeypatch.setenv("CHARTPACK_LOG_LEVEL", "ERROR")
    reset_container()
    yield
    reset_container()
    reset_logging()


@pytest.fixture
def package_file(tmp_path: Path) -> Path:
    apk, _ = make_apk("istio-charts-base", "1.20.3-r0", chart_files(), dirs=("base",))
    path = tmp_path / "istio-charts-base-1.20.3-r0.apk"
    path.write_bytes(apk)
    return path


def _config(tmp_path: Path, repo_url: str = "") -> str:
    p = tmp_path / "cfg.yml"
    p.write_text(f"package_repositories: [{json.dumps(repo_url)}]\n" if repo_url else "{}\n",
                 encoding="utf-8")
    return str(p)


class TestInspect:
    def test_inspect(self, tmp_path: Path, package_file: Path) -> None:
        result = CliRunner().invoke(main, ["--config", _config(tmp_path), "inspect", str(package_file)])
        assert result.exit_code == 0, result.output
        meta = json.loads(result.output)
        assert meta["name"] == "base"
        assert meta["version"] == "1.20.3"

    def test_inspect_without_chart(self, tmp_path: Path) -> None:
        apk, _ = make_apk("x", "1.0-r0", {"usr/bin/x": b"bin"})
        path = tmp_path / "x.apk"
        path.write_bytes(apk)
        result = CliRunner().invoke(main, ["--config", _config(tmp_path), "inspect", str(path)])
        assert result.exit_code != 0
        assert "CHART_NOT_FOUND" in result.output


class TestBuild:
    def test_build_local_file(self, tmp_path: Path, package_file: Path) -> None:
        patches = tmp_path / "patches.yml"
        patches.write_text(
            "values.yaml:\n  - {op: replace, path: /image/tag, value: v9}\n",
            encoding="utf-8",
        )
        result = CliRunner().invoke(main, [
            "--config", _config(tmp_path), "build", str(package_file), "--patches", str(patches),
        ])
        assert result.exit_code == 0, result.output
        manifest = json.loads(result.stdout.splitlines()[0])
        assert manifest["schemaVersion"] == 2
        assert manifest["annotations"]["org.opencontainers.image.title"] == "base"

    def test_build_from_repository(self, tmp_path: Path) -> None:
        url = RepoBuilder(root=tmp_path / "repo").add_chart().write()
        result = CliRunner().invoke(main, [
            "--config", _config(tmp_path, url), "build", "istio-charts-base", "--version", "1.20.3-r0",
        ])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout.splitlines()[0])["layers"][0]["mediaType"].endswith("tar+gzip")

    def test_invalid_patch_file(self, tmp_path: Path, package_file: Path) -> None:
        patches = tmp_path / "patches.yml"
        patches.write_text("values.yaml: not-a-list\n", encoding="utf-8")
        result = CliRunner().invoke(main, [
            "--config", _config(tmp_path), "build", str(package_file), "--patches", str(patches),
        ])
        assert result.exit_code != 0
        assert "VALIDATION_ERROR" in result.output


class TestPush:
    def test_push_with_fake_registry(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        url = RepoBuilder(root=tmp_path / "repo").add_chart().write()

        class FakeRegistry:
            def push(self, repository, artifact) -> str:
                return artifact.digest()

        from chartpack.services import container as container_mod
        real_reset = container_mod.reset_container

        def reset_with_fake() -> None:
            real_reset()
            get_container().set_registry(FakeRegistry())

        monkeypatch.setattr(container_mod, "reset_container", reset_with_fake)
        result = CliRunner().invoke(main, [
            "--config", _config(tmp_path, url), "push", "istio-charts-base",
            "--repository", "registry.example.com/charts/istio-base",
        ])
        assert result.exit_code == 0, result.output
        out = json.loads(result.stdout)
        assert out["id"].startswith("registry.example.com/charts/istio-base@sha256:")
        assert out["name"] == "base"

    def test_push_without_repository_config(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, [
            "--config", _config(tmp_path), "push", "istio-charts-base",
            "--repository", "registry.example.com/charts/istio-base",
        ])
        assert result.exit_code != 0
        assert "CONFIG_ERROR" in result.output
