import pytest

from component_bus.settings import SCOPE_CONFLICT_ERROR, SCOPE_CONFLICT_LAST_WINS, Settings


@pytest.fixture
def settings() -> Settings:
    return Settings()


class TestLogLevel:
    def test_default(self, settings, monkeypatch):
        """LOG_LEVEL defaults to INFO, or to the default given."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert settings.get_log_level() == "INFO"
        assert settings.get_log_level(default="warning") == "WARNING"

    def test_is_upper_cased(self, settings, monkeypatch):
        """Log levels are normalized to upper case."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert settings.get_log_level() == "DEBUG"


class TestScopeConflictPolicy:
    def test_default_is_last_wins(self, settings, monkeypatch):
        """Scope conflicts default to last-wins."""
        monkeypatch.delenv("COMPONENT_BUS_SCOPE_CONFLICT", raising=False)
        assert settings.get_scope_conflict_policy() == SCOPE_CONFLICT_LAST_WINS

    def test_error_policy(self, settings, monkeypatch):
        """The error policy is accepted case-insensitively."""
        monkeypatch.setenv("COMPONENT_BUS_SCOPE_CONFLICT", "ERROR")
        assert settings.get_scope_conflict_policy() == SCOPE_CONFLICT_ERROR

    def test_invalid_policy_raises(self, settings, monkeypatch):
        """Unknown policies are rejected."""
        monkeypatch.setenv("COMPONENT_BUS_SCOPE_CONFLICT", "first_wins")
        with pytest.raises(ValueError, match="Invalid COMPONENT_BUS_SCOPE_CONFLICT"):
            settings.get_scope_conflict_policy()


class TestMaxFlushEvents:
    def test_default(self, settings, monkeypatch):
        """The flush limit defaults to 1000 events."""
        monkeypatch.delenv("COMPONENT_BUS_MAX_FLUSH_EVENTS", raising=False)
        assert settings.get_max_flush_events() == 1000

    def test_custom(self, settings, monkeypatch):
        """The flush limit can be overridden."""
        monkeypatch.setenv("COMPONENT_BUS_MAX_FLUSH_EVENTS", "12")
        assert settings.get_max_flush_events() == 12

    @pytest.mark.parametrize("value", ["lots", "0", "-3"])
    def test_invalid_values_raise(self, settings, monkeypatch, value):
        """Non-integer and non-positive limits are rejected."""
        monkeypatch.setenv("COMPONENT_BUS_MAX_FLUSH_EVENTS", value)
        with pytest.raises(ValueError):
            settings.get_max_flush_events()


class TestServerSettings:
    def test_defaults(self, settings, monkeypatch):
        """The server binds to all interfaces on port 8000 without reload."""
        for name in ("COMPONENT_BUS_HOST", "COMPONENT_BUS_PORT", "COMPONENT_BUS_RELOAD"):
            monkeypatch.delenv(name, raising=False)
        assert settings.get_app_host() == "0.0.0.0"
        assert settings.get_app_port() == 8000
        assert settings.get_app_reload() is False

    def test_overrides(self, settings, monkeypatch):
        """Host, port and reload come from the environment."""
        monkeypatch.setenv("COMPONENT_BUS_HOST", "127.0.0.1")
        monkeypatch.setenv("COMPONENT_BUS_PORT", "9001")
        monkeypatch.setenv("COMPONENT_BUS_RELOAD", "True")
        assert settings.get_app_host() == "127.0.0.1"
        assert settings.get_app_port() == 9001
        assert settings.get_app_reload() is True

    def test_invalid_port(self, settings, monkeypatch):
        """A non-integer port is rejected."""
        monkeypatch.setenv("COMPONENT_BUS_PORT", "eighty")
        with pytest.raises(ValueError, match="Invalid COMPONENT_BUS_PORT"):
            settings.get_app_port()
