"""Routing layer - Decodificación de topics."""

from .topic_router import SUBSCRIPTION_PATTERN, TOPIC_PREFIX, RoutedTopic, is_routable, parse_topic

__all__ = ["SUBSCRIPTION_PATTERN", "TOPIC_PREFIX", "RoutedTopic", "is_routable", "parse_topic"]
