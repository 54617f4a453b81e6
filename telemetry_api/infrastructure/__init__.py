"""Infraestructura: persistencia."""
