"""Core data types shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ActionName:
    """A namespaced action identifier such as ``row/create``."""

    namespace: str
    verb: str

    @classmethod
    def parse(cls, value: str | ActionName) -> ActionName:
        """Parse ``"namespace/verb"``; a leading ``:`` is tolerated."""
        if isinstance(value, ActionName):
            return value
        text = str(value).strip().lstrip(":")
        namespace, sep, verb = text.partition("/")
        if not sep or not namespace or not verb:
            raise ValueError(f"Invalid action name (expected namespace/verb): {value!r}")
        return cls(namespace, verb)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.verb}"


@dataclass(frozen=True)
class Resource:
    """A connector-backed database configured in the host application."""

    id: int
    name: str
    engine: str  # connector kind, e.g. "postgres"
    settings: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        """Human-readable label used in error messages."""
        return f"{self.id} {self.name!r}"
