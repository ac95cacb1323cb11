"""Setting definitions with process-wide and database-local values."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from writeback.config import ConfigError, coerce_bool
from writeback.models import Resource

ENV_PREFIX = "WRITEBACK_"


@dataclass(frozen=True)
class Setting:
    name: str
    description: str
    default: Any = None
    type: str = "boolean"
    resource_local: str = "never"  # never, allowed, only

    @property
    def env_var(self) -> str:
        return ENV_PREFIX + self.name.upper().replace("-", "_")


ENABLE_ACTIONS = Setting(
    name="experimental-enable-actions",
    description=(
        "Whether to enable using the new experimental Actions features globally. "
        "(Actions must also be enabled for each Database.)"
    ),
    default=False,
)

DATABASE_ENABLE_ACTIONS = Setting(
    name="database-enable-actions",
    description="Whether to enable using the new experimental Actions for a specific Database.",
    default=False,
    resource_local="only",
)

BUILTIN_SETTINGS = (ENABLE_ACTIONS, DATABASE_ENABLE_ACTIONS)


def coerce_value(setting: Setting, value: Any) -> Any:
    """Coerce a raw (config, env, database) value to the setting's type."""
    if setting.type != "boolean" or value is None:
        return value
    return coerce_bool(value, f"setting {setting.name}")


class SettingsView:
    """Read-only settings for one call, optionally scoped to a database.

    Values resolve database-local first (where the setting allows it), then
    process-wide (unless the setting is database-local only), then default.
    """

    def __init__(
        self,
        definitions: Mapping[str, Setting],
        values: Mapping[str, Any],
        local_values: Mapping[str, Any] | None = None,
    ) -> None:
        self._definitions = definitions
        self._values = values
        self._local = MappingProxyType(dict(local_values or {}))

    def get(self, setting: Setting | str) -> Any:
        definition = self._definition(setting)
        if definition.resource_local != "never" and definition.name in self._local:
            return coerce_value(definition, self._local[definition.name])
        if definition.resource_local != "only" and definition.name in self._values:
            return self._values[definition.name]
        return definition.default

    def _definition(self, setting: Setting | str) -> Setting:
        name = setting.name if isinstance(setting, Setting) else setting
        try:
            return self._definitions[name]
        except KeyError:
            raise KeyError(f"Unknown setting: {name}") from None

    @property
    def local_values(self) -> Mapping[str, Any]:
        return self._local


class Settings:
    """Registry of setting definitions and their process-wide values."""

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        definitions: tuple[Setting, ...] = BUILTIN_SETTINGS,
    ) -> None:
        self._definitions: dict[str, Setting] = {s.name: s for s in definitions}
        self._values: dict[str, Any] = {}
        for name, value in (values or {}).items():
            self.set(name, value)

    def define(self, setting: Setting) -> None:
        self._definitions[setting.name] = setting

    def set(self, name: str, value: Any) -> None:
        """Set a process-wide value. Database-local-only settings reject this."""
        definition = self._definitions.get(name)
        if definition is None:
            raise ConfigError(f"Unknown setting: {name}")
        if definition.resource_local == "only":
            raise ConfigError(f"Setting {name} can only be set per database")
        self._values[name] = coerce_value(definition, value)

    def load_env(self, environ: Mapping[str, str] | None = None) -> None:
        """Apply ``WRITEBACK_*`` environment overrides."""
        environ = os.environ if environ is None else environ
        for definition in self._definitions.values():
            if definition.resource_local == "only":
                continue
            raw = environ.get(definition.env_var)
            if raw is not None:
                self._values[definition.name] = coerce_value(definition, raw)

    def view(self) -> SettingsView:
        """Process-wide view with no database-local values."""
        return SettingsView(self._definitions, dict(self._values))

    def for_resource(self, resource: Resource) -> SettingsView:
        """View with ``resource``'s own settings layered over process values."""
        return SettingsView(self._definitions, dict(self._values), resource.settings)

    def get(self, setting: Setting | str) -> Any:
        return self.view().get(setting)
