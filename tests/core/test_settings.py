"""Tests for actionflow.core.settings."""

import pytest
from pydantic import ValidationError

from actionflow.core.settings import (
    ActionFlowSettings,
    EmailBackendKind,
    SchedulerBackendKind,
    get_settings,
)


class TestDefaults:
    def test_defaults(self):
        s = ActionFlowSettings(_env_file=None)
        assert s.log_level == "INFO"
        assert s.log_format == "console"
        assert s.json_logs is False
        assert s.database_path is None
        assert s.scheduler_backend == SchedulerBackendKind.APSCHEDULER
        assert s.scheduler_timezone == "UTC"
        assert s.email_backend == EmailBackendKind.CONSOLE
        assert s.history_limit == 10
        assert s.api_port == 3004
        assert s.api_prefix == "/api/v1"


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ACTIONFLOW_DATABASE_PATH", "/tmp/af.db")
        monkeypatch.setenv("ACTIONFLOW_SCHEDULER_BACKEND", "thread")
        monkeypatch.setenv("ACTIONFLOW_HISTORY_LIMIT", "25")
        s = ActionFlowSettings(_env_file=None)
        assert s.database_path == "/tmp/af.db"
        assert s.scheduler_backend == SchedulerBackendKind.THREAD
        assert s.history_limit == 25

    def test_log_format_normalized(self, monkeypatch):
        monkeypatch.setenv("ACTIONFLOW_LOG_FORMAT", "JSON")
        s = ActionFlowSettings(_env_file=None)
        assert s.log_format == "json"
        assert s.json_logs is True


class TestValidation:
    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            ActionFlowSettings(_env_file=None, log_format="xml")

    def test_history_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            ActionFlowSettings(_env_file=None, history_limit=0)

    def test_unknown_scheduler_backend(self):
        with pytest.raises(ValidationError):
            ActionFlowSettings(_env_file=None, scheduler_backend="cron-daemon")


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_cache_clear_reloads(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("ACTIONFLOW_API_PORT", "9999")
        get_settings.cache_clear()
        second = get_settings()
        assert second is not first
        assert second.api_port == 9999
