"""Dependency graph utilities.

Models the workspace packages and their internal dependency edges, and
provides topological traversal for determining release order. Packages must
be released in dependency order so that when package A depends on package B,
B's new version is known before A is considered.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import CycleError
from .models import Package


class DependencyGraph:
    """Directed acyclic graph over workspace packages.

    Packages are stored in an arena and addressed by integer handles; an edge
    A → B means A depends on B. Use DependencyGraph.build() to construct one.
    """

    def __init__(self) -> None:
        self._packages: list[Package] = []
        self._handles: dict[str, int] = {}
        # handle → handles of its dependencies / dependents
        self._deps: list[list[int]] = []
        self._rdeps: list[list[int]] = []

    @classmethod
    def build(cls, packages: Iterable[Package]) -> DependencyGraph:
        """Build the graph from discovered packages.

        Dependencies on names outside the given packages are ignored.

        Raises:
            CycleError: If the internal dependencies form a cycle.
        """
        graph = cls()
        for pkg in sorted(packages, key=lambda p: p.name):
            graph._handles[pkg.name] = len(graph._packages)
            graph._packages.append(pkg)
            graph._deps.append([])
            graph._rdeps.append([])

        for handle, pkg in enumerate(graph._packages):
            for dep in pkg.deps:
                dep_handle = graph._handles.get(dep)
                if dep_handle is None or dep_handle in graph._deps[handle]:
                    continue
                graph._deps[handle].append(dep_handle)
                graph._rdeps[dep_handle].append(handle)

        graph._check_acyclic()
        return graph

    def _check_acyclic(self) -> None:
        """Depth-first search with a recursion stack; raises on the first back edge."""
        done: set[int] = set()
        stack: list[int] = []
        on_stack: set[int] = set()

        def visit(node: int) -> None:
            stack.append(node)
            on_stack.add(node)
            for dep in self._deps[node]:
                if dep in on_stack:
                    start = stack.index(dep)
                    cycle = [self._packages[h].name for h in stack[start:]]
                    raise CycleError(cycle + [self._packages[dep].name])
                if dep not in done:
                    visit(dep)
            stack.pop()
            on_stack.discard(node)
            done.add(node)

        for handle in range(len(self._packages)):
            if handle not in done:
                visit(handle)

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def package(self, name: str) -> Package:
        return self._packages[self._handles[name]]

    @property
    def packages(self) -> list[Package]:
        return list(self._packages)

    def dependencies_of(self, name: str) -> list[str]:
        """Direct internal dependencies of a package, sorted by name."""
        handles = self._deps[self._handles[name]]
        return sorted(self._packages[h].name for h in handles)

    def dependents_of(self, name: str, *, transitive: bool = False) -> set[str]:
        """Packages that depend on the given package.

        Args:
            name: Package whose reverse dependencies are wanted.
            transitive: If True, follow reverse edges all the way up.
        """
        start = self._handles[name]
        seen: set[int] = set()
        queue = list(self._rdeps[start])
        while queue:
            node = queue.pop(0)
            if node in seen:
                continue
            seen.add(node)
            if transitive:
                queue.extend(self._rdeps[node])
        return {self._packages[h].name for h in seen}

    def topological_order(self) -> list[Package]:
        """Packages in release order (dependencies before dependents).

        Uses Kahn's algorithm. Among packages whose dependencies are all
        satisfied, the one with the smallest name goes first, so the output
        is deterministic.

        Example:
            If A depends on B, and B depends on C: [C, B, A]
        """
        in_degree = [len(deps) for deps in self._deps]
        ready = sorted(
            (h for h, d in enumerate(in_degree) if d == 0),
            key=lambda h: self._packages[h].name,
        )
        order: list[Package] = []

        while ready:
            node = ready.pop(0)
            order.append(self._packages[node])
            for dependent in self._rdeps[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)
            ready.sort(key=lambda h: self._packages[h].name)

        return order
