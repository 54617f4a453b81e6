"""Transports hacia los observadores (WebSocket)."""
