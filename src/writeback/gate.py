"""Enablement gate -- ordered policy checks in front of every action."""

from __future__ import annotations

import logging

from writeback.auth import User, require_superuser
from writeback.config import ConfigError
from writeback.connectors import ACTIONS_FEATURE, ConnectorHierarchy
from writeback.errors import FeatureDisabled, UnsupportedConnector
from writeback.models import ActionName, Resource
from writeback.settings import DATABASE_ENABLE_ACTIONS, ENABLE_ACTIONS, Settings, SettingsView

logger = logging.getLogger(__name__)


class EnablementGate:
    """Evaluates, in order: global flag, connector capability, database flag, caller.

    Each check raises on violation, so the first failing check determines
    the error the caller sees.
    """

    def __init__(self, settings: Settings, hierarchy: ConnectorHierarchy) -> None:
        self._settings = settings
        self._hierarchy = hierarchy

    def check_global(self) -> None:
        """Fail if Actions are disabled process-wide."""
        if not self._settings.get(ENABLE_ACTIONS):
            logger.info("Rejected action: actions are disabled globally")
            raise FeatureDisabled("Actions are not enabled.")

    def check_resource(
        self,
        resource: Resource,
        action: ActionName,
        user: User | None = None,
    ) -> SettingsView:
        """Run the resource-scoped checks and return the call's settings view.

        The view layers ``resource``'s own settings over process values; it
        is only ever passed along explicitly, never installed globally.
        """
        if not self._hierarchy.supports(resource.engine, ACTIONS_FEATURE):
            logger.info(
                "Rejected %s: engine %s of database %s does not support actions",
                action,
                resource.engine,
                resource.id,
            )
            raise UnsupportedConnector(
                f"{resource.engine} Database {resource.describe()} does not support actions.",
                details={"database_id": resource.id, "engine": resource.engine},
            )

        view = self._settings.for_resource(resource)
        try:
            enabled = view.get(DATABASE_ENABLE_ACTIONS)
        except ConfigError as exc:
            logger.warning("Rejected %s: database %s has %s", action, resource.id, exc)
            raise FeatureDisabled(
                f"Actions are not enabled for Database {resource.id}.",
                details={"database_id": resource.id, "error": str(exc)},
            ) from exc
        if not enabled:
            logger.info("Rejected %s: actions are disabled for database %s", action, resource.id)
            raise FeatureDisabled(
                f"Actions are not enabled for Database {resource.id}.",
                details={"database_id": resource.id},
            )

        # TODO: replace with Actions-specific permissions once they exist
        if user is not None:
            require_superuser(user)
        return view
