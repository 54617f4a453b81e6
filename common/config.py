from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv


DEFAULT_BROKER_URL = "mqtt://broker.hivemq.com:1883"
DEFAULT_TOPIC = "campus/room/+/+/+/+"
DEFAULT_CORS_ORIGIN = "https://rfid-frontend-vert.vercel.app"

_TRUTHY = ("true", "1", "yes", "on")


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class BrokerEndpoint:
    host: str
    port: int
    use_tls: bool = False

    @property
    def display(self) -> str:
        # Never includes credentials.
        return f"{self.host}:{self.port}"


def parse_broker_url(url: str) -> BrokerEndpoint:
    """Parses ``mqtt://host:port`` / ``mqtts://host:port`` into an endpoint."""
    parsed = urlparse(url if "://" in url else f"mqtt://{url}")
    use_tls = parsed.scheme in ("mqtts", "ssl", "tls")
    port = parsed.port or (8883 if use_tls else 1883)
    return BrokerEndpoint(host=parsed.hostname or "localhost", port=port, use_tls=use_tls)


@dataclass(frozen=True)
class Settings:
    app_env: str

    broker_url: str
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    mqtt_topic: str
    reconnect_seconds: int
    remote_ingest_enabled: bool

    local_broker_host: str
    local_broker_port: int

    http_port: int
    database_url: str
    redis_url: Optional[str]
    cors_origins: Tuple[str, ...]

    ingest_workers: int
    ingest_queue_size: int
    seed_rooms: bool

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def broker(self) -> BrokerEndpoint:
        return parse_broker_url(self.broker_url)


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("TELEMETRY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    app_env = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "production"

    cors = os.getenv("CORS_ORIGIN", DEFAULT_CORS_ORIGIN)
    cors_origins = tuple(o.strip() for o in cors.split(",") if o.strip())

    return Settings(
        app_env=app_env.strip().lower(),
        broker_url=os.getenv("MQTT_BROKER_URL", DEFAULT_BROKER_URL),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_topic=os.getenv("MQTT_TOPIC", DEFAULT_TOPIC),
        reconnect_seconds=int(os.getenv("MQTT_RECONNECT_SECONDS", "1")),
        remote_ingest_enabled=_flag("FF_REMOTE_INGEST_ENABLED", "true"),
        local_broker_host=os.getenv("LOCAL_BROKER_HOST", "127.0.0.1"),
        local_broker_port=int(os.getenv("MQTT_PORT", "1883")),
        http_port=int(os.getenv("HTTP_PORT", "3000")),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./telemetry.db"),
        redis_url=os.getenv("REDIS_URL") or None,
        cors_origins=cors_origins,
        ingest_workers=int(os.getenv("INGEST_WORKERS", "4")),
        ingest_queue_size=int(os.getenv("INGEST_QUEUE_SIZE", "1000")),
        seed_rooms=_flag("SEED_ROOMS", "true"),
    )
