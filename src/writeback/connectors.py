"""Connector kind hierarchy and capability lookup."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

ACTIONS_FEATURE = "actions"


@dataclass
class ConnectorKind:
    name: str
    parent: str | None = None
    features: set[str] = field(default_factory=set)


class ConnectorHierarchy:
    """Statically declared connector kinds with single-parent inheritance.

    A kind supports a feature when it, or any of its ancestors, declares it.
    """

    def __init__(self) -> None:
        self._kinds: dict[str, ConnectorKind] = {}

    def register(
        self,
        name: str,
        parent: str | None = None,
        features: Iterable[str] = (),
    ) -> None:
        """Declare a kind, or extend an already declared one."""
        existing = self._kinds.get(name)
        if existing is None:
            self._kinds[name] = ConnectorKind(name, parent, set(features))
            return
        if parent is not None:
            previous, existing.parent = existing.parent, parent
            try:
                self.ancestors(name)
            except ValueError:
                existing.parent = previous
                raise
        existing.features.update(features)

    def ancestors(self, kind: str) -> list[str]:
        """Return ``kind`` followed by its parents, most specific first."""
        chain = [kind]
        current = self._kinds.get(kind)
        while current is not None and current.parent is not None:
            if current.parent in chain:
                raise ValueError(f"Cycle in connector hierarchy at {current.parent!r}")
            chain.append(current.parent)
            current = self._kinds.get(current.parent)
        return chain

    def supports(self, kind: str, feature: str) -> bool:
        for name in self.ancestors(kind):
            declared = self._kinds.get(name)
            if declared is not None and feature in declared.features:
                return True
        return False

    def kinds(self) -> list[str]:
        return sorted(self._kinds)


def default_hierarchy() -> ConnectorHierarchy:
    """Build the built-in connector hierarchy."""
    hierarchy = ConnectorHierarchy()
    hierarchy.register("sql")
    hierarchy.register("sql-jdbc", parent="sql")
    hierarchy.register("h2", parent="sql-jdbc", features=[ACTIONS_FEATURE])
    hierarchy.register("postgres", parent="sql-jdbc", features=[ACTIONS_FEATURE])
    hierarchy.register("mysql", parent="sql-jdbc")
    hierarchy.register("sqlite", parent="sql")
    hierarchy.register("mongo")
    return hierarchy
