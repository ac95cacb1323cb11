"""Tests for writeback.settings — process-wide and database-local values."""

import pytest

from writeback.config import ConfigError
from writeback.models import Resource
from writeback.settings import (
    DATABASE_ENABLE_ACTIONS,
    ENABLE_ACTIONS,
    Setting,
    Settings,
    coerce_value,
)


def _db(**settings):
    return Resource(id=1, name="Sample", engine="h2", settings=settings)


class TestDefaults:
    def test_actions_disabled_by_default(self):
        settings = Settings()
        assert settings.get(ENABLE_ACTIONS) is False
        assert settings.get(DATABASE_ENABLE_ACTIONS) is False

    def test_unknown_setting(self):
        with pytest.raises(KeyError, match="Unknown setting"):
            Settings().get("no-such-setting")


class TestProcessValues:
    def test_set_from_values(self):
        settings = Settings({"experimental-enable-actions": "true"})
        assert settings.get("experimental-enable-actions") is True

    def test_unknown_setting_rejected(self):
        with pytest.raises(ConfigError, match="Unknown setting"):
            Settings({"bogus": True})

    def test_database_only_setting_rejected(self):
        with pytest.raises(ConfigError, match="only be set per database"):
            Settings({"database-enable-actions": True})

    def test_env_override(self):
        settings = Settings({"experimental-enable-actions": False})
        settings.load_env({"WRITEBACK_EXPERIMENTAL_ENABLE_ACTIONS": "yes"})
        assert settings.get(ENABLE_ACTIONS) is True

    def test_env_ignores_database_only(self):
        settings = Settings()
        settings.load_env({"WRITEBACK_DATABASE_ENABLE_ACTIONS": "true"})
        assert settings.get(DATABASE_ENABLE_ACTIONS) is False

    def test_env_from_process(self, monkeypatch):
        monkeypatch.setenv("WRITEBACK_EXPERIMENTAL_ENABLE_ACTIONS", "1")
        settings = Settings()
        settings.load_env()
        assert settings.get(ENABLE_ACTIONS) is True


class TestResourceView:
    def test_database_value_used(self):
        view = Settings().for_resource(_db(**{"database-enable-actions": True}))
        assert view.get(DATABASE_ENABLE_ACTIONS) is True

    def test_database_value_coerced(self):
        view = Settings().for_resource(_db(**{"database-enable-actions": "false"}))
        assert view.get(DATABASE_ENABLE_ACTIONS) is False

    def test_global_setting_not_database_local(self):
        settings = Settings({"experimental-enable-actions": False})
        view = settings.for_resource(_db(**{"experimental-enable-actions": True}))
        assert view.get(ENABLE_ACTIONS) is False

    def test_allowed_setting_falls_back_to_process_value(self):
        settings = Settings()
        settings.define(
            Setting("row-limit", "Max rows", default=100, type="integer", resource_local="allowed")
        )
        settings.set("row-limit", 500)
        assert settings.for_resource(_db()).get("row-limit") == 500
        assert settings.for_resource(_db(**{"row-limit": 10})).get("row-limit") == 10

    def test_view_does_not_change_process_values(self):
        settings = Settings()
        settings.for_resource(_db(**{"database-enable-actions": True}))
        assert settings.get(DATABASE_ENABLE_ACTIONS) is False

    def test_view_is_read_only(self):
        view = Settings().for_resource(_db(**{"database-enable-actions": True}))
        with pytest.raises(TypeError):
            view.local_values["database-enable-actions"] = False


class TestCoerceValue:
    @pytest.mark.parametrize("raw", [True, "true", "TRUE", "1", "yes", "on"])
    def test_truthy(self, raw):
        assert coerce_value(ENABLE_ACTIONS, raw) is True

    @pytest.mark.parametrize("raw", [False, "false", "0", "no", "off", ""])
    def test_falsy(self, raw):
        assert coerce_value(ENABLE_ACTIONS, raw) is False

    def test_invalid(self):
        with pytest.raises(ConfigError, match="boolean"):
            coerce_value(ENABLE_ACTIONS, "maybe")
