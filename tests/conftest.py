"""Shared fixtures: a recording handler and a fully wired executor."""

from __future__ import annotations

from typing import Any

import pytest

from writeback.connectors import default_hierarchy
from writeback.executor import ActionExecutor
from writeback.models import ActionName, Resource
from writeback.registry import ActionRegistry
from writeback.settings import Settings
from writeback.store import InMemoryResourceStore


class RecordingHandler:
    """Async action handler that records its calls."""

    def __init__(self, result: Any = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.result = {"ok": True} if result is None else result

    async def __call__(
        self,
        engine: str,
        action: ActionName,
        resource: Resource,
        arg_map: Any,
        *,
        settings: Any,
    ) -> Any:
        self.calls.append(
            {
                "engine": engine,
                "action": action,
                "resource": resource,
                "arg_map": arg_map,
                "settings": settings,
            }
        )
        return self.result


ENABLED = {"database-enable-actions": True}


@pytest.fixture()
def handler():
    return RecordingHandler()


@pytest.fixture()
def registry(handler):
    registry = ActionRegistry(default_hierarchy())
    for action in ("row/create", "row/update", "row/delete", "bulk/delete"):
        registry.register("sql-jdbc", action, handler)
    return registry


@pytest.fixture()
def store():
    return InMemoryResourceStore(
        [
            Resource(id=2, name="Sample", engine="postgres", settings=dict(ENABLED)),
            Resource(id=3, name="Warehouse", engine="h2", settings={}),
            Resource(id=4, name="Docs", engine="mongo", settings=dict(ENABLED)),
            Resource(id=5, name="Legacy", engine="mysql", settings=dict(ENABLED)),
        ]
    )


@pytest.fixture()
def settings():
    return Settings({"experimental-enable-actions": True})


@pytest.fixture()
def executor(registry, store, settings):
    return ActionExecutor(registry=registry, store=store, settings=settings)
