"""测试公共 fixture"""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from tests.apk_factory import RepoBuilder, RsaKey, generate_key


@pytest.fixture(scope="session")
def repo_key(tmp_path_factory: pytest.TempPathFactory) -> RsaKey:
    return generate_key(tmp_path_factory.mktemp("keys"), "test-repo.rsa.pub")


@pytest.fixture(scope="session")
def other_key(tmp_path_factory: pytest.TempPathFactory) -> RsaKey:
    return generate_key(tmp_path_factory.mktemp("other-keys"), "other.rsa.pub")


@pytest.fixture
def repo(tmp_path: Path, repo_key: RsaKey) -> RepoBuilder:
    return RepoBuilder(root=tmp_path / "repo", key=repo_key)


@pytest.fixture
def isolated_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """把 tempfile 默认目录指向独立目录，便于断言临时文件已清理"""
    d = tmp_path / "tmp"
    d.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(d))
    return d
