"""Prometheus metrics instrumentation for the alarm ledger."""

from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator, metrics

# Alarm ingestion counters
alarm_events_received = Counter(
    "alarm_events_received_total",
    "Alarm messages received from the channel or the HTTP bridge",
)

alarm_events_processed = Counter(
    "alarm_events_processed_total",
    "Alarm events reconciled into the alarm log",
    ["outcome"],
)

alarm_events_rejected = Counter(
    "alarm_events_rejected_total",
    "Alarm messages dropped because they could not be parsed",
)

alarm_storage_failures = Counter(
    "alarm_storage_failures_total",
    "Alarm log operations that failed against the database",
    ["operation"],
)

# MQTT channel gauge
mqtt_connected = Gauge(
    "alarm_mqtt_connected",
    "Whether the alarm channel is subscribed (1=subscribed, 0=not subscribed)",
)


def setup_metrics(app) -> Instrumentator:
    """Set up Prometheus metrics instrumentation for FastAPI app."""
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/health", "/health/live", "/health/ready", "/metrics"],
        env_var_name="METRICS_ENABLED",
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace="",
            metric_subsystem="",
            latency_highr_buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )
    )

    instrumentator.instrument(app)

    return instrumentator


def expose_metrics(app, instrumentator: Instrumentator) -> None:
    """Expose the /metrics endpoint."""
    instrumentator.expose(app, include_in_schema=False, should_gzip=True)


# Helper functions for updating custom metrics


def record_event_received() -> None:
    alarm_events_received.inc()


def record_event_processed(outcome: str) -> None:
    alarm_events_processed.labels(outcome=outcome).inc()


def record_event_rejected() -> None:
    alarm_events_rejected.inc()


def record_storage_failure(operation: str) -> None:
    alarm_storage_failures.labels(operation=operation).inc()


def set_mqtt_connected(connected: bool) -> None:
    """Set alarm channel subscription status."""
    mqtt_connected.set(1 if connected else 0)
