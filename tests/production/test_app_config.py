"""
Tests for environment-driven configuration (config classes, database URLs, logging context).
"""
import pytest

from shopfloor.config import LocalConfig, ProductionConfig, SandboxConfig, TestingConfig, get_config
from shopfloor.db_config import LOCAL_SQLITE_URI, get_database_config
from shopfloor.logging_config import PlanningOperationContext


class TestGetConfig:

    @pytest.mark.parametrize("env,expected", [
        ("local", LocalConfig),
        ("development", LocalConfig),
        ("staging", SandboxConfig),
        ("prod", ProductionConfig),
        ("test", TestingConfig),
        ("something-else", LocalConfig),
    ])
    def test_environment_selection(self, monkeypatch, env, expected):
        monkeypatch.setenv("FLASK_ENV", env)
        assert get_config() is expected


class TestGetDatabaseConfig:

    def test_local_defaults_to_sqlite(self, monkeypatch):
        monkeypatch.delenv("LOCAL_DATABASE_URL", raising=False)

        uri, engine_options = get_database_config("local")

        assert uri == LOCAL_SQLITE_URI
        assert engine_options is None

    def test_sandbox_requires_url(self, monkeypatch):
        monkeypatch.delenv("SANDBOX_DATABASE_URL", raising=False)

        with pytest.raises(ValueError, match="SANDBOX_DATABASE_URL"):
            get_database_config("staging")

    def test_production_falls_back_to_database_url(self, monkeypatch):
        monkeypatch.delenv("PRODUCTION_DATABASE_URL", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgresql://plant/db")

        uri, engine_options = get_database_config("production")

        assert uri == "postgresql://plant/db"
        assert engine_options["connect_args"]["application_name"] == "shopfloor_planner"


class TestPlanningOperationContext:

    def test_exceptions_propagate(self):
        with pytest.raises(RuntimeError):
            with PlanningOperationContext("shift_to_target", task_count=1):
                raise RuntimeError("boom")

    def test_record_collects_results(self):
        with PlanningOperationContext("shift_to_target", operation_id="abc123") as operation:
            operation.record(updated=3)

        assert operation.operation_id == "abc123"
        assert operation.results == {"updated": 3}
