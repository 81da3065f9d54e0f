"""Tests for configuration helpers."""

import pytest

from chat_core.config import load_settings, parse_duration, resolve_db_path


class TestParseDuration:
    """Tests for parse_duration()."""

    @pytest.mark.parametrize(
        "value,expected",
        [("3600", 3600), ("30m", 1800), ("1h", 3600), ("1d", 86400), (90, 90)],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_duration("soon")


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "FANOUT_ATOMIC", "RELAY_DELETE_POLICY", "CORS_ORIGINS"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings.fanout_atomic is False
        assert settings.relay_delete_policy == "global"
        assert settings.jwt_expires_in == 3600

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FANOUT_ATOMIC", "true")
        monkeypatch.setenv("RELAY_DELETE_POLICY", "participants")
        monkeypatch.setenv("JWT_EXPIRES_IN", "2h")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")

        settings = load_settings()

        assert settings.fanout_atomic is True
        assert settings.relay_delete_policy == "participants"
        assert settings.jwt_expires_in == 7200
        assert settings.cors_origins == ["http://a.test", "http://b.test"]


class TestResolveDbPath:
    """Tests for resolve_db_path()."""

    def test_memory(self):
        assert resolve_db_path(":memory:") == ":memory:"

    def test_relative_path_is_anchored(self):
        assert resolve_db_path("03_data/x.db").is_absolute()
