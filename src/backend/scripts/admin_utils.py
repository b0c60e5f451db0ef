#!/usr/bin/env python3
"""Alarm Ledger Admin Utilities - Manage device serials and inspect the alarm log."""

import asyncio
import argparse
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.deps import get_code_table
from app.services.alarm_query_service import AlarmQueryService
from app.services.device_registry_service import DeviceRegistryService, RegistryError


@asynccontextmanager
async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Open a session on a one-off engine and dispose the engine afterwards."""
    engine = create_async_engine(settings.database_url, echo=False)
    try:
        async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with async_session() as session:
            yield session
    finally:
        await engine.dispose()


async def register_serial(mac: str, serial: str) -> bool:
    """Register a serial for a device MAC."""
    async with get_db_session() as db:
        try:
            updated = await DeviceRegistryService(db).register(mac, serial)
        except RegistryError as e:
            print(f"❌ {e}")
            return False
        print(f"✅ Serial '{serial}' registered for {mac.upper()} ({updated} alarm records updated)")
        return True


async def lookup_serial(mac: str) -> bool:
    """Print the serial registered for a device MAC."""
    async with get_db_session() as db:
        serial = await DeviceRegistryService(db).lookup(mac)
        if serial is None:
            print(f"❌ No serial registered for {mac.upper()}")
            return False
        print(f"{mac.upper()}: {serial}")
        return True


async def list_alarms(mac: str | None, active_only: bool, limit: int) -> None:
    """List alarm records, newest first."""
    codes = get_code_table()
    async with get_db_session() as db:
        service = AlarmQueryService(db)
        if mac or active_only:
            records = await service.list_filtered(
                mac=mac, active=True if active_only else None, limit=limit
            )
        else:
            records = await service.list_all(limit=limit)

        print(f"\n{'Started':<27} {'MAC':<20} {'IP':<16} {'Serial':<12} {'State':<7} {'Status':<25}")
        print("-" * 110)
        for r in records:
            print(
                f"{r.started_at.isoformat():<27} {r.device_mac:<20} {r.device_ip:<16} "
                f"{(r.serial or '-'):<12} {r.state.value:<7} {codes.describe(r.code):<25}"
            )
        print(f"\nTotal: {len(records)} records")


def main():
    parser = argparse.ArgumentParser(description="Alarm Ledger Admin Utilities")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Register serial command
    register_parser = subparsers.add_parser("register-serial", help="Register a device serial")
    register_parser.add_argument("mac", help="Device MAC address")
    register_parser.add_argument("serial", help="Serial to assign")

    # Lookup serial command
    lookup_parser = subparsers.add_parser("serial", help="Show the serial for a device")
    lookup_parser.add_argument("mac", help="Device MAC address")

    # List alarms command
    list_parser = subparsers.add_parser("alarms", help="List alarm records")
    list_parser.add_argument("--mac", default=None, help="Partial MAC filter")
    list_parser.add_argument("--active", action="store_true", help="Only active alarms")
    list_parser.add_argument("--limit", type=int, default=50, help="Maximum rows")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == "register-serial":
        asyncio.run(register_serial(args.mac, args.serial))
    elif args.command == "serial":
        asyncio.run(lookup_serial(args.mac))
    elif args.command == "alarms":
        asyncio.run(list_alarms(args.mac, args.active, args.limit))


if __name__ == "__main__":
    main()
