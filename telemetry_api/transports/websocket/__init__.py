from .handler import WebSocketSubscriber, websocket_endpoint

__all__ = ["WebSocketSubscriber", "websocket_endpoint"]
