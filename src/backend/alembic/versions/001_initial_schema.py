"""Initial schema: alarm records hypertable and device registrations

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from app.core.retention import ALARM_RETENTION

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create device registry, alarm log hypertable and its retention policy."""
    op.execute("CREATE EXTENSION IF NOT EXISTS timescaledb;")

    # 1. Create device_registrations table
    op.create_table(
        "device_registrations",
        sa.Column("device_mac", sa.String(32), primary_key=True),
        sa.Column("serial", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    # 2. Create alarm_records table (will become hypertable)
    op.create_table(
        "alarm_records",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("stopped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("device_mac", sa.String(32), nullable=False),
        sa.Column("device_ip", sa.String(45), nullable=False),
        sa.Column("serial", sa.String(100), nullable=True),
        sa.Column("code", sa.Integer, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", "started_at"),
    )

    # 3. Convert alarm_records to hypertable on started_at
    op.execute("""
        SELECT create_hypertable(
            'alarm_records',
            by_range('started_at'),
            chunk_time_interval => INTERVAL '1 day',
            if_not_exists => TRUE
        );
    """)

    # 4. Add indexes on alarm_records
    op.create_index("ix_alarm_records_started_at", "alarm_records", ["started_at"])
    op.create_index("ix_alarm_records_device_mac", "alarm_records", ["device_mac"])
    op.create_index("ix_alarm_records_device_ip", "alarm_records", ["device_ip"])
    op.create_index("ix_alarm_records_active", "alarm_records", ["active"])
    op.create_index(
        "ix_alarm_records_device_active",
        "alarm_records",
        ["device_mac", "device_ip", "active"],
    )

    # 5. Add retention policy (rows expire ALARM_RETENTION_DAYS after started_at, open or closed)
    op.execute(f"""
        SELECT add_retention_policy(
            '{ALARM_RETENTION.table}',
            drop_after => {ALARM_RETENTION.interval_sql}
        );
    """)


def downgrade() -> None:
    """Drop alarm log and device registry."""
    op.execute("SELECT remove_retention_policy('alarm_records', if_exists => TRUE);")

    op.drop_index("ix_alarm_records_device_active", "alarm_records")
    op.drop_index("ix_alarm_records_active", "alarm_records")
    op.drop_index("ix_alarm_records_device_ip", "alarm_records")
    op.drop_index("ix_alarm_records_device_mac", "alarm_records")
    op.drop_index("ix_alarm_records_started_at", "alarm_records")
    op.drop_table("alarm_records")

    op.drop_table("device_registrations")
