"""仓库索引加载与签名校验测试"""

from pathlib import Path

import pytest

from chartpack.core.apk import signing
from chartpack.core.apk.index import load_index, parse_index
from chartpack.core.apk.source import PackageSource
from chartpack.core.exceptions import ConfigError, ResolutionError
from tests.apk_factory import RepoBuilder, RsaKey, gz, tar_bytes

INDEX_TEXT = """C:Q1abc=
P:istio-charts-base
V:1.20.3-r0
A:aarch64
S:1024
T:Istio base chart
D:so:libc.musl-aarch64.so.1 !istio-legacy
p:cmd:istio-base=1.20.3-r0

P:broken
V:not-a-version

P:istio-charts-base
V:1.19.0-r2
A:aarch64
"""


class TestParseIndex:
    def test_records(self) -> None:
        pkgs = parse_index(INDEX_TEXT, repository="https://repo.example.com", arch="aarch64")
        assert [str(p) for p in pkgs] == ["istio-charts-base-1.20.3-r0", "istio-charts-base-1.19.0-r2"]
        first = pkgs[0]
        assert first.checksum == "Q1abc="
        assert first.size == 1024
        assert first.depends == ["so:libc.musl-aarch64.so.1", "!istio-legacy"]
        assert first.provides == ["cmd:istio-base=1.20.3-r0"]
        assert first.location == (
            "https://repo.example.com/aarch64/istio-charts-base-1.20.3-r0.apk"
        )


class TestLoadIndex:
    def test_signed_index(self, repo: RepoBuilder, repo_key: RsaKey) -> None:
        url = repo.add("a", "1.0-r0").write()
        keys = signing.load_public_keys([str(repo_key.public_path)])
        index = load_index(url, "aarch64", keys, PackageSource())
        assert [p.name for p in index.packages] == ["a"]
        assert index.packages[0].repository == url

    def test_untrusted_key(self, repo: RepoBuilder, other_key: RsaKey) -> None:
        url = repo.add("a", "1.0-r0").write()
        keys = signing.load_public_keys([str(other_key.public_path)])
        with pytest.raises(ResolutionError, match="not signed by a trusted key"):
            load_index(url, "aarch64", keys, PackageSource())

    def test_unsigned_index_rejected_when_keys_configured(
        self, tmp_path: Path, repo_key: RsaKey,
    ) -> None:
        url = RepoBuilder(root=tmp_path / "r").add("a", "1.0-r0").write()
        keys = signing.load_public_keys([str(repo_key.public_path)])
        with pytest.raises(ResolutionError, match="not signed by a trusted key"):
            load_index(url, "aarch64", keys, PackageSource())

    def test_unsigned_index_without_keys(self, tmp_path: Path) -> None:
        url = RepoBuilder(root=tmp_path / "r").add("a", "1.0-r0").write()
        index = load_index(url, "aarch64", {}, PackageSource())
        assert len(index.packages) == 1

    def test_missing_index(self, tmp_path: Path) -> None:
        with pytest.raises(ResolutionError, match="failed to load repository index"):
            load_index(str(tmp_path), "aarch64", {}, PackageSource())

    def test_missing_apkindex_entry(self, tmp_path: Path) -> None:
        (tmp_path / "aarch64").mkdir()
        (tmp_path / "aarch64" / "APKINDEX.tar.gz").write_bytes(
            gz(tar_bytes({"DESCRIPTION": b"empty"})),
        )
        with pytest.raises(ResolutionError, match="no APKINDEX entry"):
            load_index(str(tmp_path), "aarch64", {}, PackageSource())

    def test_remote_scheme_rejected(self) -> None:
        with pytest.raises(ResolutionError, match="unsupported URL scheme"):
            load_index("ftp://mirror.example.com", "aarch64", {}, PackageSource())


class TestLoadKeys:
    def test_missing_key_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="failed to load repository public key"):
            signing.load_public_keys([str(tmp_path / "nope.rsa.pub")])

    def test_keyed_by_basename(self, repo_key: RsaKey) -> None:
        keys = signing.load_public_keys([str(repo_key.public_path)])
        assert list(keys) == ["test-repo.rsa.pub"]
