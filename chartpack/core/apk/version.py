"""apk 版本号比较与约束匹配

版本格式: ``<数字>(.<数字>)*[字母](_<后缀>[数字])*[~<hash>][-r<数字>]``
后缀排序: _alpha < _beta < _pre < _rc < (无后缀) < _cvs < _svn < _git < _hg < _p
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

_VERSION_RE = re.compile(
    r"^(?P<numbers>\d+(?:\.\d+)*)"
    r"(?P<letter>[a-z]?)"
    r"(?P<suffixes>(?:_(?:alpha|beta|pre|rc|cvs|svn|git|hg|p)\d*)*)"
    r"(?:~[0-9a-f]+)?"
    r"(?:-r(?P<release>\d+))?$"
)
_SUFFIX_RE = re.compile(r"_(alpha|beta|pre|rc|cvs|svn|git|hg|p)(\d*)")

_NO_SUFFIX = 4
_SUFFIX_RANK = {
    "alpha": 0, "beta": 1, "pre": 2, "rc": 3,
    "cvs": 5, "svn": 6, "git": 7, "hg": 8, "p": 9,
}

_ATOM_RE = re.compile(r"^(?P<name>[^=<>~]+)(?:(?P<op>>=|<=|=|>|<|~)(?P<version>.+))?$")


@functools.lru_cache(maxsize=4096)
def version_key(version: str) -> tuple:
    """生成可直接比较的排序键，非法版本抛出 ValueError"""
    m = _VERSION_RE.match(version)
    if m is None:
        raise ValueError(f"invalid package version: {version!r}")
    numbers = tuple(int(n) for n in m.group("numbers").split("."))
    suffixes = tuple(
        (_SUFFIX_RANK[s], int(n or 0))
        for s, n in _SUFFIX_RE.findall(m.group("suffixes"))
    ) + ((_NO_SUFFIX, 0),)
    release = int(m.group("release") or 0)
    return (numbers, m.group("letter"), suffixes, release)


def is_valid(version: str) -> bool:
    try:
        version_key(version)
    except ValueError:
        return False
    return True


def compare(a: str, b: str) -> int:
    ka, kb = version_key(a), version_key(b)
    return (ka > kb) - (ka < kb)


@dataclass(frozen=True)
class Constraint:
    """单个版本约束，op 为空表示任意版本"""

    op: str = ""
    version: str = ""

    def matches(self, version: str) -> bool:
        if not self.op:
            return True
        if self.op == "~":
            # 模糊匹配: 给定的版本号组成部分全部相同
            if version == self.version:
                return True
            return version.startswith(self.version) and (
                version[len(self.version)] in ".-_"
            )
        c = compare(version, self.version)
        return {
            "=": c == 0,
            ">=": c >= 0,
            "<=": c <= 0,
            ">": c > 0,
            "<": c < 0,
        }[self.op]

    def __str__(self) -> str:
        return f"{self.op}{self.version}"


def parse_atom(atom: str) -> tuple[str, Constraint]:
    """解析依赖项 ``name[op version]``"""
    m = _ATOM_RE.match(atom.strip())
    if m is None:
        raise ValueError(f"invalid dependency atom: {atom!r}")
    op = m.group("op") or ""
    ver = m.group("version") or ""
    if op and op != "~" and not is_valid(ver):
        raise ValueError(f"invalid version in dependency atom: {atom!r}")
    return m.group("name"), Constraint(op, ver)
