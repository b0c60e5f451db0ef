"""Tests for AlarmQueryService."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.retention import ALARM_RETENTION, RetentionPolicy
from app.models import AlarmRecord
from app.services.alarm_query_service import AlarmQueryService, InvalidQuery


class TestListAll:
    """Tests for the unfiltered alarm history."""

    async def test_newest_first(self, db_session, alarm_history):
        """Should order records by started_at descending."""
        service = AlarmQueryService(db_session)

        records = await service.list_all()

        assert len(records) == 3
        started = [r.started_at for r in records]
        assert started == sorted(started, reverse=True)

    async def test_empty(self, db_session):
        """Should return an empty list when nothing is logged."""
        service = AlarmQueryService(db_session)

        assert await service.list_all() == []

    async def test_limit_and_offset(self, db_session, alarm_history):
        """Should page through the history."""
        service = AlarmQueryService(db_session)

        page = await service.list_all(limit=1, offset=1)

        assert len(page) == 1
        assert page[0].device_mac == "AA:BB:CC:00:00:01"
        assert page[0].code == 5

    async def test_expired_records_hidden(self, db_session, alarm_history):
        """Records started before the retention window should not be returned."""
        db_session.add(
            AlarmRecord(
                started_at=datetime.now(timezone.utc) - timedelta(days=31),
                device_mac="AA:BB:CC:00:00:01",
                device_ip="10.0.0.1",
                code=2,
                active=True,
            )
        )
        await db_session.commit()
        service = AlarmQueryService(db_session)

        records = await service.list_all()

        assert len(records) == 3
        assert all(r.code != 2 for r in records)

    async def test_retention_relative_to_now(self, db_session, alarm_history):
        """Moving 'now' past the window should hide everything."""
        service = AlarmQueryService(db_session)

        records = await service.list_all(now=datetime.now(timezone.utc) + timedelta(days=31))

        assert records == []

    async def test_custom_retention(self, db_session, alarm_history):
        """Should honour a shorter retention window."""
        service = AlarmQueryService(
            db_session,
            retention=RetentionPolicy("alarm_records", "started_at", timedelta(minutes=90)),
        )

        records = await service.list_all()

        assert [r.device_mac for r in records] == ["DD:EE:FF:00:00:02"]


class TestListFiltered:
    """Tests for filtered queries."""

    async def test_requires_a_filter(self, db_session):
        """Should reject a query with no filters."""
        service = AlarmQueryService(db_session)

        with pytest.raises(InvalidQuery):
            await service.list_filtered()

    async def test_blank_filters_count_as_absent(self, db_session):
        """Blank strings should not count as filters."""
        service = AlarmQueryService(db_session)

        with pytest.raises(InvalidQuery):
            await service.list_filtered(mac="  ", ip="")

    async def test_mac_partial_case_insensitive(self, db_session, alarm_history):
        """Should match any part of the MAC ignoring case."""
        service = AlarmQueryService(db_session)

        records = await service.list_filtered(mac="bb:cc")

        assert len(records) == 2
        assert all(r.device_mac == "AA:BB:CC:00:00:01" for r in records)

    async def test_mac_wildcards_are_literal(self, db_session, alarm_history):
        """LIKE wildcards in the filter should match literally."""
        service = AlarmQueryService(db_session)

        assert await service.list_filtered(mac="%") == []
        assert await service.list_filtered(mac="A_") == []

    async def test_ip_exact(self, db_session, alarm_history):
        """Should match IP exactly."""
        service = AlarmQueryService(db_session)

        assert len(await service.list_filtered(ip="10.0.0.2")) == 1
        assert await service.list_filtered(ip="10.0.0") == []

    async def test_active_only(self, db_session, alarm_history):
        """Should return only active records."""
        service = AlarmQueryService(db_session)

        records = await service.list_filtered(active=True)

        assert len(records) == 2
        assert all(r.active for r in records)
        assert records[0].started_at > records[1].started_at

    async def test_inactive_only(self, db_session, alarm_history):
        """active=False should be a filter, not absent."""
        service = AlarmQueryService(db_session)

        records = await service.list_filtered(active=False)

        assert len(records) == 1
        assert records[0].code == 3

    async def test_combined_filters(self, db_session, alarm_history):
        """Filters should combine with AND."""
        service = AlarmQueryService(db_session)

        records = await service.list_filtered(mac="aa:bb", ip="10.0.0.1", active=True)

        assert len(records) == 1
        assert records[0].code == 5


class TestGetSerial:
    """Tests for serial lookup through the query service."""

    async def test_get_serial(self, db_session, registered_device):
        service = AlarmQueryService(db_session)

        assert await service.get_serial("AA:BB:CC:00:00:01") == "SN-0001"
        assert await service.get_serial("00:00") is None


class TestRetentionPolicy:
    """Tests for the retention declaration."""

    def test_alarm_retention_declaration(self):
        """Alarm records should expire 30 days after started_at."""
        assert ALARM_RETENTION.table == "alarm_records"
        assert ALARM_RETENTION.column == "started_at"
        assert ALARM_RETENTION.window == timedelta(days=30)

    def test_is_expired(self):
        now = datetime(2024, 2, 1, tzinfo=timezone.utc)

        assert ALARM_RETENTION.is_expired(now - timedelta(days=31), now=now)
        assert not ALARM_RETENTION.is_expired(now - timedelta(days=29), now=now)
