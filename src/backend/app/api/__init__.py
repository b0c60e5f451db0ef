"""API Routes Module."""

from fastapi import APIRouter

from app.api import alarms, devices

router = APIRouter()

router.include_router(alarms.router, prefix="/alarms", tags=["Alarms"])
router.include_router(devices.router, prefix="/devices", tags=["Devices"])
