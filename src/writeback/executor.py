"""Action dispatcher -- normalize, validate, gate, and route to a handler."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import Any

from writeback.auth import current_user
from writeback.contracts import ContractResolver, default_contracts
from writeback.errors import NotFound, UnknownAction, ValidationFailure
from writeback.gate import EnablementGate
from writeback.models import ActionName
from writeback.normalize import NormalizerRegistry, default_normalizers, envelope_database
from writeback.registry import ActionRegistry
from writeback.settings import Settings
from writeback.store import ResourceStore

logger = logging.getLogger(__name__)


def target_database_id(arg_map: Any, default: Any = None) -> int:
    """Extract the target database id from a normalized arg map.

    Bulk arg maps are lists of rows which must all share one database;
    ``default`` is the out-of-band id of a bulk envelope, used when no row names one.
    """
    if isinstance(arg_map, Mapping):
        database_id = arg_map.get("database")
    elif isinstance(arg_map, list):
        ids = {row.get("database") for row in arg_map if isinstance(row, Mapping)}
        if len(ids) > 1:
            raise ValidationFailure(
                f"All rows must target the same database, got {sorted(map(str, ids))}",
                details={"error": "rows target different databases", "path": "database"},
            )
        database_id = ids.pop() if ids else default
    else:
        database_id = None
    if database_id is None:
        raise NotFound("No Database specified in arg map.")
    if isinstance(database_id, bool) or not isinstance(database_id, int) or database_id <= 0:
        raise ValidationFailure(
            f"database must be a positive integer, got {database_id!r}",
            details={"error": "database must be a positive integer", "path": "database"},
        )
    return database_id


class ActionExecutor:
    """Performs actions against configured databases.

    Implement a handler and register it in the ActionRegistry to support a
    new (engine, action) combination; call :meth:`perform_action` to run one.
    """

    def __init__(
        self,
        *,
        registry: ActionRegistry,
        store: ResourceStore,
        settings: Settings,
        normalizers: NormalizerRegistry | None = None,
        contracts: ContractResolver | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._settings = settings
        self._normalizers = normalizers or default_normalizers()
        self._contracts = contracts or default_contracts()
        self._gate = EnablementGate(settings, registry.hierarchy)

    @property
    def registry(self) -> ActionRegistry:
        return self._registry

    @property
    def settings(self) -> Settings:
        return self._settings

    def known_actions(self) -> list[str]:
        return sorted(str(action) for action in self._registry.known_actions())

    async def close(self) -> None:
        await self._store.close()

    async def perform_action(self, action: str | ActionName, arg_map: Any) -> Any:
        """Perform ``action`` with ``arg_map`` and return the handler's result.

        Raises an ActionError subclass for every rejected request; exceptions
        raised by the handler itself propagate unchanged.
        """
        try:
            action = ActionName.parse(action)
        except ValueError as exc:
            raise UnknownAction(str(exc), details={"action": str(action)}) from None

        out_of_band_id = envelope_database(arg_map)
        arg_map = self._normalizers.normalize(action, arg_map)
        self._contracts.validate(action, arg_map)

        # Before the lookup, so a disabled engine never reveals database details
        self._gate.check_global()

        database_id = target_database_id(arg_map, default=out_of_band_id)
        resource = await self._store.find_resource_by_id(database_id)
        if resource is None:
            raise NotFound(
                f"Database {database_id} not found.", details={"database_id": database_id}
            )

        settings = self._gate.check_resource(resource, action, current_user.get())

        logger.debug("Dispatching %s to %s database %s", action, resource.engine, resource.id)
        handler = self._registry.resolve(resource.engine, action)
        result = handler(resource.engine, action, resource, arg_map, settings=settings)
        if inspect.isawaitable(result):
            result = await result
        logger.info("Performed %s on %s database %s", action, resource.engine, resource.id)
        return result
