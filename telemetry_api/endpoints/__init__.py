from .health import router as health_router
from .rooms import router as rooms_router

__all__ = ["health_router", "rooms_router"]
