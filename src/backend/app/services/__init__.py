"""Alarm Ledger Services Module."""

from app.services.device_registry_service import (
    DeviceRegistryService,
    RegistryError,
    StorageReadFailure,
)
from app.services.alarm_reconciliation_service import (
    AlarmReconciliationService,
    ReconciliationAction,
    ReconciliationOutcome,
    StorageWriteFailure,
)
from app.services.alarm_query_service import AlarmQueryService, InvalidQuery

__all__ = [
    "DeviceRegistryService",
    "RegistryError",
    "StorageReadFailure",
    "AlarmReconciliationService",
    "ReconciliationAction",
    "ReconciliationOutcome",
    "StorageWriteFailure",
    "AlarmQueryService",
    "InvalidQuery",
]
