"""Tests for the initial schema migration."""

import importlib.util
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from app.core.retention import ALARM_RETENTION, RetentionPolicy

MIGRATION = Path(__file__).parent.parent / "alembic" / "versions" / "001_initial_schema.py"


@pytest.fixture
def migration():
    """Load migration 001 as a module."""
    spec = importlib.util.spec_from_file_location("migration_001", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _executed_sql(mock_op: MagicMock) -> list[str]:
    return [str(c.args[0]) for c in mock_op.execute.call_args_list]


class TestRetentionPolicyMigration:
    """The stored retention policy should match the query-time window."""

    def test_interval_literal(self):
        policy = RetentionPolicy("alarm_records", "started_at", timedelta(days=45))

        assert policy.interval_sql == "INTERVAL '45 days'"

    def test_default_window(self, migration):
        """Should register the policy with the configured window."""
        with patch.object(migration, "op") as mock_op:
            migration.upgrade()

        policy_sql = [s for s in _executed_sql(mock_op) if "add_retention_policy" in s]
        assert len(policy_sql) == 1
        assert "'alarm_records'" in policy_sql[0]
        assert ALARM_RETENTION.interval_sql in policy_sql[0]

    def test_follows_configured_days(self, migration):
        """A different ALARM_RETENTION_DAYS should change the stored policy."""
        policy = RetentionPolicy("alarm_records", "started_at", timedelta(days=60))

        with patch.object(migration, "op") as mock_op, patch.object(migration, "ALARM_RETENTION", policy):
            migration.upgrade()

        policy_sql = [s for s in _executed_sql(mock_op) if "add_retention_policy" in s]
        assert "INTERVAL '60 days'" in policy_sql[0]
        assert "30 days" not in policy_sql[0]

    def test_hypertable_on_retention_column(self, migration):
        """The hypertable should be partitioned on the column retention keys on."""
        with patch.object(migration, "op") as mock_op:
            migration.upgrade()

        hypertable_sql = [s for s in _executed_sql(mock_op) if "create_hypertable" in s]
        assert f"by_range('{ALARM_RETENTION.column}')" in hypertable_sql[0]
