"""Métricas Prometheus del pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

MESSAGES = Counter(
    "telemetry_messages_total",
    "Telemetry messages handled by the pipeline",
    ["ingress", "outcome"],  # processed, dropped, ignored, failed
)

PERSISTENCE_FAILURES = Counter(
    "telemetry_persistence_failures_total",
    "Rejected persistence writes",
    ["collection"],
)

BROADCASTS = Counter(
    "telemetry_broadcasts_total",
    "Envelopes pushed to subscribers",
    ["kind"],  # roomUpdate, activityUpdate
)

SUBSCRIBERS = Gauge(
    "telemetry_subscribers",
    "Currently registered real-time subscribers",
)

PROCESSING_LATENCY = Histogram(
    "telemetry_processing_seconds",
    "Time spent processing one message",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

QUEUE_DROPPED = Counter(
    "telemetry_queue_dropped_total",
    "Messages dropped because the worker queue was full",
)
