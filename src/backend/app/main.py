"""Alarm Ledger FastAPI Application Entry Point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import router as api_router
from app.core.config import settings
from app.core.deps import engine, get_db
from app.core.logging import configure_logging
from app.services.health_service import health_service
from app.services.mqtt_service import AlarmMQTTService

configure_logging(settings.log_level, settings.log_json)

logger = structlog.get_logger()

# Module-level reference for the ingestion listener lifecycle
_mqtt_service: AlarmMQTTService | None = None


async def verify_database() -> None:
    """Fail startup if the alarm log store is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    global _mqtt_service

    # Startup
    logger.info("Starting alarm ledger", environment=settings.environment)

    try:
        await verify_database()
    except Exception as e:
        logger.critical("Alarm log store unavailable at startup", error=str(e))
        raise
    logger.info("Database connection verified")

    # The listener reconnects on its own, so a broker outage is not fatal
    if settings.mqtt_enabled:
        try:
            _mqtt_service = AlarmMQTTService(
                broker_host=settings.mqtt_broker_host,
                broker_port=settings.mqtt_broker_port,
                alarm_topic=settings.mqtt_alarm_topic,
                username=settings.mqtt_username,
                password=settings.mqtt_password,
                client_id=settings.mqtt_client_id,
                reconnect_interval=settings.mqtt_reconnect_interval,
                max_reconnect_interval=settings.mqtt_max_reconnect_interval,
            )
            await _mqtt_service.start()
            logger.info("Alarm MQTT service started", broker=settings.mqtt_broker_host)
        except Exception as e:
            logger.warning("Failed to start alarm MQTT service", error=str(e))

    yield

    # Shutdown
    logger.info("Shutting down alarm ledger")

    if _mqtt_service:
        await _mqtt_service.stop()
        _mqtt_service = None

    await engine.dispose()


app = FastAPI(
    title="Alarm Ledger API",
    description="Device alarm event log - ingestion, reconciliation and query",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    # Convert errors to JSON-serializable format
    errors = []
    for error in exc.errors():
        err = {
            "loc": error.get("loc"),
            "msg": str(error.get("msg")),
            "type": error.get("type"),
        }
        errors.append(err)

    logger.warning("Validation error",
                   path=str(request.url.path),
                   errors=errors,
                   body=str(exc.body)[:500] if hasattr(exc, 'body') else None)
    return JSONResponse(
        status_code=422,
        content={"detail": errors}
    )


# Set up Prometheus metrics instrumentation
_instrumentator = None
if settings.metrics_enabled:
    from app.core.metrics import setup_metrics, expose_metrics

    _instrumentator = setup_metrics(app)
    expose_metrics(app, _instrumentator)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Static health check for load balancers and orchestrators."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/health/live")
async def liveness_check() -> dict:
    """Report that the application is running."""
    result = health_service.get_liveness()
    return result.to_dict()


@app.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)) -> dict:
    """Report whether the alarm log and alarm channel can serve traffic."""
    result = await health_service.get_readiness(db, _mqtt_service)
    return result.to_dict()
