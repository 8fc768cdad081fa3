"""依赖解析测试"""

import pytest

from chartpack.core.apk.index import RepositoryIndex
from chartpack.core.apk.models import PackageQuery, RepositoryPackage
from chartpack.core.apk.resolver import PackageResolver
from chartpack.core.cancel import CancelToken
from chartpack.core.exceptions import BuildCancelledError, ResolutionError


def _pkg(name: str, version: str, *, depends=(), provides=(), repo="r1", arch="aarch64"):
    return RepositoryPackage(
        name=name, version=version, arch=arch,
        depends=list(depends), provides=list(provides), repository=repo,
    )


def _resolver(*pkgs: RepositoryPackage, extra: list[RepositoryPackage] | None = None) -> PackageResolver:
    indexes = [RepositoryIndex("r1", "aarch64", list(pkgs))]
    if extra:
        indexes.append(RepositoryIndex("r2", "aarch64", extra))
    return PackageResolver(indexes)


class TestResolve:
    def test_explicit_version(self) -> None:
        r = _resolver(_pkg("chart", "1.19.0-r0"), _pkg("chart", "1.20.3-r0"))
        result = r.resolve(PackageQuery("chart", "1.19.0-r0", "aarch64"))
        assert str(result.select("chart")) == "chart-1.19.0-r0"
        assert result.conflicts == []

    def test_highest_version_by_default(self) -> None:
        r = _resolver(
            _pkg("chart", "1.19.0-r0"), _pkg("chart", "1.20.3-r1"), _pkg("chart", "1.20.3-r0"),
        )
        result = r.resolve(PackageQuery("chart", arch="aarch64"))
        assert result.select("chart").version == "1.20.3-r1"

    def test_unknown_package(self) -> None:
        r = _resolver(_pkg("chart", "1.0-r0"))
        with pytest.raises(ResolutionError, match="nothing provides missing"):
            r.resolve(PackageQuery("missing", arch="aarch64"))

    def test_unknown_dependency_names_parent(self) -> None:
        r = _resolver(_pkg("chart", "1.0-r0", depends=["ghost"]))
        with pytest.raises(ResolutionError, match=r"required by chart-1.0-r0"):
            r.resolve(PackageQuery("chart", arch="aarch64"))

    def test_unsatisfied_version(self) -> None:
        r = _resolver(_pkg("chart", "1.0-r0"), _pkg("chart", "1.1-r0"))
        with pytest.raises(ResolutionError, match="do not satisfy") as exc_info:
            r.resolve(PackageQuery("chart", "2.0-r0", "aarch64"))
        assert "1.0-r0" in str(exc_info.value)
        assert "1.1-r0" in str(exc_info.value)

    def test_other_arch_ignored(self) -> None:
        r = _resolver(_pkg("chart", "1.0-r0", arch="x86_64"))
        with pytest.raises(ResolutionError, match="nothing provides"):
            r.resolve(PackageQuery("chart", arch="aarch64"))

    def test_noarch_accepted(self) -> None:
        r = _resolver(_pkg("chart", "1.0-r0", arch="noarch"))
        assert r.resolve(PackageQuery("chart", arch="aarch64")).select("chart") is not None


class TestClosure:
    def test_each_package_once(self) -> None:
        r = _resolver(
            _pkg("a", "1.0", depends=["b", "c"]),
            _pkg("b", "1.0", depends=["c"]),
            _pkg("c", "1.0"),
        )
        result = r.resolve(PackageQuery("a", arch="aarch64"))
        assert [p.name for p in result.packages] == ["a", "b", "c"]

    def test_provides(self) -> None:
        r = _resolver(
            _pkg("a", "1.0", depends=["so:libfoo.so.1"]),
            _pkg("libfoo", "1.0", provides=["so:libfoo.so.1=1.0"]),
        )
        result = r.resolve(PackageQuery("a", arch="aarch64"))
        assert [p.name for p in result.packages] == ["a", "libfoo"]

    def test_conflicting_constraints(self) -> None:
        r = _resolver(
            _pkg("a", "1.0", depends=["b", "c<2"]),
            _pkg("b", "1.0", depends=["c>=2"]),
            _pkg("c", "1.0"),
            _pkg("c", "2.0"),
        )
        result = r.resolve(PackageQuery("a", arch="aarch64"))
        assert result.conflicts == ["c: <2, >=2"]

    def test_forbidden_package(self) -> None:
        r = _resolver(
            _pkg("a", "1.0", depends=["b", "!c"]),
            _pkg("b", "1.0", depends=["c"]),
            _pkg("c", "1.0"),
        )
        result = r.resolve(PackageQuery("a", arch="aarch64"))
        assert result.conflicts == ["c: forbidden by a-1.0"]

    def test_replaced_version_drops_its_dependencies(self) -> None:
        r = _resolver(
            _pkg("chart", "1.0-r0", depends=["lib", "helper"]),
            _pkg("helper", "1.0-r0", depends=["lib<2"]),
            _pkg("lib", "3.0-r0", depends=["only-for-lib3"]),
            _pkg("lib", "1.0-r0"),
            _pkg("only-for-lib3", "1.0-r0"),
        )
        result = r.resolve(PackageQuery("chart", arch="aarch64"))
        assert [p.name for p in result.packages] == ["chart", "lib", "helper"]
        assert result.select("lib").version == "1.0-r0"
        assert result.conflicts == []

    def test_replaced_version_missing_dependency_ignored(self) -> None:
        r = _resolver(
            _pkg("chart", "1.0-r0", depends=["lib", "helper"]),
            _pkg("helper", "1.0-r0", depends=["lib<2"]),
            _pkg("lib", "3.0-r0", depends=["does-not-exist"]),
            _pkg("lib", "1.0-r0"),
        )
        result = r.resolve(PackageQuery("chart", arch="aarch64"))
        assert [p.name for p in result.packages] == ["chart", "lib", "helper"]
        assert result.select("lib").version == "1.0-r0"

    def test_first_repository_wins_on_tie(self) -> None:
        r = _resolver(_pkg("chart", "1.0", repo="r1"), extra=[_pkg("chart", "1.0", repo="r2")])
        assert r.resolve(PackageQuery("chart", arch="aarch64")).select("chart").repository == "r1"

    def test_newer_version_in_later_repository(self) -> None:
        r = _resolver(_pkg("chart", "1.0", repo="r1"), extra=[_pkg("chart", "1.1", repo="r2")])
        assert r.resolve(PackageQuery("chart", arch="aarch64")).select("chart").repository == "r2"


class TestCancel:
    def test_cancelled_before_start(self) -> None:
        token = CancelToken()
        token.cancel()
        r = PackageResolver([RepositoryIndex("r1", "aarch64", [_pkg("a", "1.0")])], cancel=token)
        with pytest.raises(BuildCancelledError, match="package resolution cancelled"):
            r.resolve(PackageQuery("a", arch="aarch64"))
