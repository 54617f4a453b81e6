"""Room telemetry ingest service."""
