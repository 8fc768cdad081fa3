"""依赖解析器

以查询为唯一的 world 项，对一个或多个仓库索引求依赖闭包:
- 同名包取满足全部约束的最高版本，版本相同时先出现的仓库优先
- so:/cmd:/pc: 等虚拟名通过 provides 字段解析到具体包
- 同一包名收到无法同时满足的约束时记入冲突列表
"""

from __future__ import annotations

import logging
from collections import deque

from chartpack.core.apk import version as apkver
from chartpack.core.apk.index import RepositoryIndex
from chartpack.core.apk.models import PackageQuery, RepositoryPackage, ResolvedPackageSet
from chartpack.core.cancel import CancelToken
from chartpack.core.exceptions import ResolutionError

logger = logging.getLogger(__name__)

# 重选后重新遍历的轮数上限
MAX_PASSES = 16


class _Walk:
    """一轮遍历的中间状态，依赖边以父包的 name-version 为键，world 项的父为空串"""

    def __init__(self) -> None:
        self.selected: dict[str, RepositoryPackage] = {}
        self.constraints: dict[str, list[tuple[apkver.Constraint, str]]] = {}
        self.children: dict[str, list[str]] = {}
        self.forbidden: list[tuple[str, str]] = []
        self.conflicts: list[tuple[str, str]] = []
        self.errors: list[tuple[str, str]] = []
        self.reselected = False

    def add_conflict(self, name: str, collected: list[apkver.Constraint]) -> None:
        entry = (name, f"{name}: " + ", ".join(str(c) for c in collected))
        if entry not in self.conflicts:
            self.conflicts.append(entry)

    def reachable(self) -> list[str]:
        """从 world 项沿当前选中版本的依赖边可达的包名，按发现顺序"""
        order: list[str] = []
        seen: set[str] = set()
        queue: deque[str] = deque(self.children.get("", []))
        while queue:
            name = queue.popleft()
            if name in seen or name not in self.selected:
                continue
            seen.add(name)
            order.append(name)
            queue.extend(self.children.get(str(self.selected[name]), []))
        return order

    def parents(self, reachable: list[str]) -> set[str]:
        return {""} | {str(self.selected[name]) for name in reachable}

    def learned(self, reachable: list[str]) -> dict[str, list[apkver.Constraint]]:
        """只保留由可达包施加的约束，被替换版本带来的约束随之丢弃"""
        parents = self.parents(reachable)
        result: dict[str, list[apkver.Constraint]] = {}
        for name, entries in self.constraints.items():
            kept = [c for c, parent in entries if parent in parents]
            if kept:
                result[name] = kept
        return result


class PackageResolver:
    """基于仓库索引的依赖解析"""

    def __init__(
        self,
        indexes: list[RepositoryIndex],
        cancel: CancelToken | None = None,
    ) -> None:
        self.cancel = cancel or CancelToken()
        self._by_name: dict[str, list[RepositoryPackage]] = {}
        self._providers: dict[str, list[RepositoryPackage]] = {}
        for index in indexes:
            for pkg in index.packages:
                self._by_name.setdefault(pkg.name, []).append(pkg)
                for prov in pkg.provides:
                    prov_name = prov.split("=", 1)[0]
                    self._providers.setdefault(prov_name, []).append(pkg)

    def candidates(self, name: str, arch: str = "") -> list[RepositoryPackage]:
        pkgs = self._by_name.get(name, [])
        if arch:
            pkgs = [p for p in pkgs if p.arch in (arch, "noarch", "")]
        return pkgs

    def available_versions(self, name: str, arch: str = "") -> list[str]:
        versions = {p.version for p in self.candidates(name, arch)}
        return sorted(versions, key=apkver.version_key)

    @staticmethod
    def _best(
        candidates: list[RepositoryPackage],
        constraints: list[apkver.Constraint],
    ) -> RepositoryPackage | None:
        matching = [
            p for p in candidates
            if all(c.matches(p.version) for c in constraints)
        ]
        if not matching:
            return None
        # max 在键相同时返回第一个，即先出现的仓库优先
        return max(matching, key=lambda p: apkver.version_key(p.version))

    def resolve(self, query: PackageQuery) -> ResolvedPackageSet:
        """解析查询的完整运行时依赖闭包

        单轮遍历中某个包被重新选择时，旧版本引入的依赖和约束已经混入本轮结果，
        因此带着仍然可达的约束重新遍历，直到一轮内不再发生重选。
        缺失依赖只有在最终选择中仍然可达时才报错。

        Raises:
            ResolutionError: 包名不存在，或版本约束无法满足
            BuildCancelledError: 解析过程中被取消
        """
        learned: dict[str, list[apkver.Constraint]] = {}
        for attempt in range(1, MAX_PASSES + 1):
            walk = self._walk(query, learned)
            reachable = walk.reachable()
            if not walk.reselected:
                break
            learned = walk.learned(reachable)
            logger.debug("第 %d 轮解析发生重选, 按 %d 个约束重新解析", attempt, len(learned))
        else:
            raise ResolutionError(
                f"resolution of {query.atom()} did not settle after {MAX_PASSES} passes"
            )

        parents = walk.parents(reachable)
        for parent, message in walk.errors:
            if parent in parents:
                raise ResolutionError(message)

        conflicts = [c for name, c in walk.conflicts if name in reachable]
        for name, parent in walk.forbidden:
            if name in reachable and parent in parents:
                conflicts.append(f"{name}: forbidden by {parent or 'world'}")

        packages = [walk.selected[name] for name in reachable]
        logger.info(
            "依赖解析完成: %s -> %d 个包, %d 个冲突",
            query.atom(), len(packages), len(conflicts),
        )
        return ResolvedPackageSet(packages=packages, conflicts=conflicts)

    def _walk(self, query: PackageQuery, learned: dict[str, list[apkver.Constraint]]) -> _Walk:
        """从 world 项出发做一轮广度优先遍历，错误暂存到 walk.errors"""
        arch = query.arch
        walk = _Walk()

        queue: deque[tuple[str, str]] = deque([(query.atom(), "")])
        while queue:
            self.cancel.raise_if_cancelled("package resolution")
            atom, parent = queue.popleft()
            if atom.startswith("!"):
                walk.forbidden.append((atom[1:], parent))
                continue

            try:
                name, constraint = apkver.parse_atom(atom)
            except ValueError as exc:
                raise ResolutionError(str(exc)) from exc
            required_by = f" (required by {parent})" if parent else ""

            if not self.candidates(name, arch):
                provider = self._pick_provider(name, arch)
                if provider is None:
                    walk.errors.append((parent, (
                        f"nothing provides {atom}{required_by} "
                        f"in the configured repositories for arch {arch or 'any'}"
                    )))
                    continue
                name, constraint = provider.name, apkver.Constraint()

            walk.children.setdefault(parent, []).append(name)
            if constraint.op:
                walk.constraints.setdefault(name, []).append((constraint, parent))

            collected = list(learned.get(name, []))
            for c, _ in walk.constraints.get(name, []):
                if c not in collected:
                    collected.append(c)

            current = walk.selected.get(name)
            if current is not None and all(c.matches(current.version) for c in collected):
                continue

            best = self._best(self.candidates(name, arch), collected)
            if best is None and current is None:
                # 首次出现且约束互斥时，仍按本项自身的约束选出一个版本
                best = self._best(self.candidates(name, arch), [constraint] if constraint.op else [])
                if best is None:
                    walk.errors.append((parent, (
                        f"{name}{constraint}{required_by}: available versions "
                        f"{self.available_versions(name, arch)} do not satisfy "
                        f"the constraint"
                    )))
                    continue
                walk.add_conflict(name, collected)
            elif best is None:
                walk.add_conflict(name, collected)
                continue

            if current is not None:
                logger.debug("重新选择 %s: %s -> %s", name, current.version, best.version)
                walk.reselected = True
            walk.selected[name] = best
            for dep in best.depends:
                queue.append((dep, str(best)))
        return walk

    def _pick_provider(self, name: str, arch: str) -> RepositoryPackage | None:
        providers = [
            p for p in self._providers.get(name, [])
            if not arch or p.arch in (arch, "noarch", "")
        ]
        if not providers:
            return None
        return max(providers, key=lambda p: apkver.version_key(p.version))
