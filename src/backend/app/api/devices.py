"""Device registry API endpoints.

Operators assign serials to device MAC addresses; registering a serial also
stamps it onto the device's existing alarm records.
"""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.core import metrics
from app.core.deps import DbSession
from app.integrations.alarms.protocols import normalize_mac
from app.services.device_registry_service import (
    DeviceRegistryService,
    RegistryError,
    StorageReadFailure,
)

router = APIRouter()


class SerialRequest(BaseModel):
    """Register serial request."""

    serial: str = Field(..., min_length=1, max_length=100)


class SerialResponse(BaseModel):
    """Serial registered for a device."""

    mac: str
    serial: str


class RegisterSerialResponse(BaseModel):
    """Register serial result."""

    mac: str
    serial: str
    updated_record_count: int


class DeviceRegistrationResponse(BaseModel):
    """Device registration."""

    mac: str
    serial: str
    created_at: str | None
    updated_at: str | None


@router.get("", response_model=list[DeviceRegistrationResponse])
async def list_registrations(
    db: DbSession,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
):
    """List registered devices."""
    service = DeviceRegistryService(db)
    registrations = await service.list_registrations(limit=limit, offset=offset)
    return [
        DeviceRegistrationResponse(
            mac=r.device_mac,
            serial=r.serial,
            created_at=r.created_at.isoformat() if r.created_at else None,
            updated_at=r.updated_at.isoformat() if r.updated_at else None,
        )
        for r in registrations
    ]


@router.get("/{mac}/serial", response_model=SerialResponse)
async def get_serial(mac: str, db: DbSession):
    """Get the serial registered for a MAC address."""
    service = DeviceRegistryService(db)
    try:
        serial = await service.lookup(mac)
    except StorageReadFailure as e:
        metrics.record_storage_failure("read")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if serial is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No serial registered for {mac}",
        )
    return SerialResponse(mac=normalize_mac(mac), serial=serial)


@router.put("/{mac}/serial", response_model=RegisterSerialResponse)
async def register_serial(mac: str, request: SerialRequest, db: DbSession):
    """Register (or replace) the serial for a MAC address."""
    service = DeviceRegistryService(db)
    try:
        updated = await service.register(mac, request.serial)
    except RegistryError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return RegisterSerialResponse(
        mac=normalize_mac(mac),
        serial=request.serial.strip(),
        updated_record_count=updated,
    )
