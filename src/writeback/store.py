"""Database record lookup for the dispatcher."""

from __future__ import annotations

import json
import os
import stat
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import aiosqlite

from writeback.models import Resource

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS databases (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    engine TEXT NOT NULL,
    settings TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_databases_engine ON databases(engine);
"""


class ResourceStore(ABC):
    """Read-only view of the configured databases."""

    @abstractmethod
    async def find_resource_by_id(self, resource_id: int) -> Resource | None:
        """Return the database with ``resource_id``, or None."""
        ...

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class InMemoryResourceStore(ResourceStore):
    """Resource store backed by a dict, seeded from config."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: dict[int, Resource] = {r.id: r for r in resources}

    def add_resource(self, resource: Resource) -> None:
        self._resources[resource.id] = resource

    async def find_resource_by_id(self, resource_id: int) -> Resource | None:
        return self._resources.get(resource_id)


class SQLiteResourceStore(ResourceStore):
    """Async SQLite store for database records and their local settings."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create schema, open persistent connection, and set file permissions."""
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()

        # Database settings may hold credentials
        os.chmod(self._path, stat.S_IRUSR | stat.S_IWUSR)

    def _get_conn(self) -> aiosqlite.Connection:
        """Return the persistent connection, or raise if not initialized."""
        if self._conn is None:
            raise RuntimeError("Store not initialized — call initialize() first")
        return self._conn

    async def add_resource(self, resource: Resource) -> None:
        """Insert or replace a database record."""
        conn = self._get_conn()
        await conn.execute(
            """INSERT OR REPLACE INTO databases (id, name, engine, settings)
               VALUES (?, ?, ?, ?)""",
            (resource.id, resource.name, resource.engine, json.dumps(resource.settings)),
        )
        await conn.commit()

    async def find_resource_by_id(self, resource_id: int) -> Resource | None:
        conn = self._get_conn()
        cursor = await conn.execute("SELECT * FROM databases WHERE id = ?", (resource_id,))
        row = await cursor.fetchone()
        return self._row_to_resource(dict(row)) if row else None

    @staticmethod
    def _row_to_resource(row: dict[str, Any]) -> Resource:
        settings = json.loads(row["settings"]) if row.get("settings") else {}
        return Resource(
            id=row["id"],
            name=row["name"],
            engine=row["engine"],
            settings=settings,
        )

    async def health_check(self) -> bool:
        """Return True if the database connection is alive."""
        try:
            conn = self._get_conn()
            await conn.execute("SELECT 1")
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Close the persistent connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
