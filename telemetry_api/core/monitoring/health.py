"""Health del receptor: dependencias + ingress + contadores."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from ...broadcast.redis_mirror import RedisConnection
from ...infrastructure.persistence.repositories import PersistenceGateway

logger = logging.getLogger(__name__)

DATABASE = "database"
REDIS = "redis"

Check = Callable[[], bool]


@dataclass
class HealthReport:
    """Healthy = the store answers and at least one ingress is connected.

    Redis is reported but never makes the service unhealthy.
    """
    ingress: Dict[str, bool]
    dependencies: Dict[str, bool] = field(default_factory=dict)
    subscribers: int = 0
    processed: int = 0
    failed: int = 0

    @property
    def healthy(self) -> bool:
        return self.dependencies.get(DATABASE, False) and any(self.ingress.values())

    @property
    def redis_connected(self) -> bool:
        return self.dependencies.get(REDIS, False)

    def to_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "ingress": dict(self.ingress),
            "db_connected": self.dependencies.get(DATABASE, False),
            "redis_connected": self.redis_connected,
            "subscribers": self.subscribers,
            "messages_processed": self.processed,
            "messages_failed": self.failed,
        }


class HealthMonitor:
    def __init__(
        self,
        gateway: Optional[PersistenceGateway] = None,
        redis_conn: Optional[RedisConnection] = None,
    ):
        self._checks: Dict[str, Check] = {
            DATABASE: gateway.ping if gateway is not None else _down,
            REDIS: (lambda: redis_conn.is_connected) if redis_conn is not None else _down,
        }

    def run_checks(self) -> Dict[str, bool]:
        results = {}
        for name, check in self._checks.items():
            try:
                results[name] = bool(check())
            except Exception as e:
                logger.warning("[HEALTH] %s check raised: %s", name, e)
                results[name] = False
        return results

    def report(
        self,
        ingress: Dict[str, bool],
        subscribers: int = 0,
        processed: int = 0,
        failed: int = 0,
    ) -> HealthReport:
        return HealthReport(
            ingress=dict(ingress),
            dependencies=self.run_checks(),
            subscribers=subscribers,
            processed=processed,
            failed=failed,
        )


def _down() -> bool:
    return False
