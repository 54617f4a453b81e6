"""Núcleo del pipeline de telemetría: dominio, routing, motor y transporte."""
