"""Metrics — Prometheus metrics collection."""

from __future__ import annotations

from nxt_connector.metrics.collector import ConnectorMetrics, MetricsCollector

__all__ = ["ConnectorMetrics", "MetricsCollector"]
