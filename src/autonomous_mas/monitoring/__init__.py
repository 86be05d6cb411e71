"""Prometheus metrics for the engine."""

from autonomous_mas.monitoring.metrics import EngineMetrics

__all__ = ["EngineMetrics"]
