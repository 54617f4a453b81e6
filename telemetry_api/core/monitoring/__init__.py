"""Monitoring layer - Métricas y observabilidad."""

from .stats import Stats
from .health import HealthMonitor, HealthReport

__all__ = ["Stats", "HealthMonitor", "HealthReport"]
