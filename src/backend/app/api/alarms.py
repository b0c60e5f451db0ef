"""Alarm log REST API endpoints.

Read access to the alarm log plus an HTTP bridge that feeds single raw
alarm messages through the same reconciliation path as the MQTT channel.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.core.deps import CodeTable, DbSession
from app.integrations.alarms.codes import AlarmCodeTable
from app.integrations.alarms.protocols import MalformedEvent
from app.models.alarm_record import AlarmRecord
from app.services.alarm_query_service import AlarmQueryService, InvalidQuery
from app.services.alarm_ingestion_service import AlarmIngestionService, get_ingestion_service
from app.services.alarm_reconciliation_service import StorageWriteFailure

router = APIRouter()


# ==================== Schemas ====================

class AlarmRecordResponse(BaseModel):
    """Alarm record with its code description resolved."""
    id: str
    started_at: str
    stopped_at: str | None
    device_mac: str
    device_ip: str
    serial: str | None
    code: int
    description: str
    state: str
    active: bool


class AlarmListResponse(BaseModel):
    """Alarm log page, newest first."""
    count: int
    data: list[AlarmRecordResponse]


class AlarmMessageRequest(BaseModel):
    """Raw alarm message as published on the alarm channel."""
    message: str = Field(..., min_length=1, description="DATE TIME MAC IP FLAG CODE COUNTER")


class AlarmIngestResponse(BaseModel):
    """Result of ingesting one alarm message."""
    action: str
    closed_count: int
    record: AlarmRecordResponse | None = None


def to_response(record: AlarmRecord, codes: AlarmCodeTable) -> AlarmRecordResponse:
    return AlarmRecordResponse(
        id=str(record.id),
        started_at=record.started_at.isoformat(),
        stopped_at=record.stopped_at.isoformat() if record.stopped_at else None,
        device_mac=record.device_mac,
        device_ip=record.device_ip,
        serial=record.serial,
        code=record.code,
        description=codes.describe(record.code),
        state=record.state.value,
        active=record.active,
    )


def _list_response(records: list[AlarmRecord], codes: AlarmCodeTable) -> AlarmListResponse:
    return AlarmListResponse(
        count=len(records),
        data=[to_response(r, codes) for r in records],
    )


# ==================== Endpoints ====================

@router.get("", response_model=AlarmListResponse)
async def list_alarms(
    db: DbSession,
    codes: CodeTable,
    limit: int | None = Query(default=None, ge=1, le=10000),
    offset: int = Query(default=0, ge=0),
):
    """Full alarm history, newest first."""
    service = AlarmQueryService(db)
    records = await service.list_all(limit=limit, offset=offset)
    return _list_response(records, codes)


@router.get("/search", response_model=AlarmListResponse)
async def search_alarms(
    db: DbSession,
    codes: CodeTable,
    mac: str | None = Query(default=None, description="Case-insensitive partial MAC match"),
    ip: str | None = Query(default=None, description="Exact IP match"),
    active: bool | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=10000),
    offset: int = Query(default=0, ge=0),
):
    """Alarm history filtered by device and state. At least one filter is required."""
    service = AlarmQueryService(db)
    try:
        records = await service.list_filtered(
            mac=mac, ip=ip, active=active, limit=limit, offset=offset
        )
    except InvalidQuery as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _list_response(records, codes)


@router.get("/codes", response_model=dict[int, str])
async def list_alarm_codes(codes: CodeTable):
    """Alarm status code table."""
    return codes.as_dict()


@router.post("/events", response_model=AlarmIngestResponse, status_code=status.HTTP_202_ACCEPTED)
async def ingest_alarm_message(
    request: AlarmMessageRequest,
    db: DbSession,
    codes: CodeTable,
    ingestion: Annotated[AlarmIngestionService, Depends(get_ingestion_service)],
):
    """Reconcile one raw alarm message, as if it arrived on the alarm channel."""
    try:
        outcome = await ingestion.ingest(request.message, db, source="http")
    except MalformedEvent as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StorageWriteFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return AlarmIngestResponse(
        action=outcome.action.value,
        closed_count=outcome.closed_count,
        record=to_response(outcome.record, codes) if outcome.record else None,
    )
