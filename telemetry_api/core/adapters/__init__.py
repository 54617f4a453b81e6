"""Adapters layer - Conversión payload → dominio."""

from .event_normalizer import EventNormalizer, parse_payload

__all__ = ["EventNormalizer", "parse_payload"]
