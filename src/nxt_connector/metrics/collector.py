"""Metrics collector — Prometheus counters, gauges, histograms.

Connector metrics:
- ``nxt_scans_total`` counter
- ``nxt_scan_duration_seconds`` histogram
- ``nxt_deposits_total`` counter-vec (confirmed, unconfirmed)
- ``nxt_sweeps_total`` counter-vec (ok, failed)
- ``nxt_withdrawals_total`` counter
- ``nxt_relinks_total`` counter
- ``nxt_cursor_height`` gauge
- ``nxt_deposit_addresses`` gauge
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "nxt"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`ConnectorMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class ConnectorMetrics:
    """High-level metrics for scans, sweeps and withdrawals."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._scans = self._collector.counter(
            f"{_PREFIX}_scans_total",
            "Completed deposit scan passes",
        )
        self._scan_duration = self._collector.histogram(
            f"{_PREFIX}_scan_duration_seconds",
            "Duration of deposit scan passes",
        )
        self._deposits = self._collector.counter(
            f"{_PREFIX}_deposits_total",
            "Deposits reported by scan passes",
            ("state",),
        )
        self._sweeps = self._collector.counter(
            f"{_PREFIX}_sweeps_total",
            "Sweeps of deposit accounts into the main account",
            ("outcome",),
        )
        self._withdrawals = self._collector.counter(
            f"{_PREFIX}_withdrawals_total",
            "Withdrawals broadcast from the main account",
        )
        self._relinks = self._collector.counter(
            f"{_PREFIX}_relinks_total",
            "Scan passes that re-linked the cursor after a fork",
        )
        self._cursor_height = self._collector.gauge(
            f"{_PREFIX}_cursor_height",
            "Height of the last block processed by the deposit scan",
        )
        self._deposit_addresses = self._collector.gauge(
            f"{_PREFIX}_deposit_addresses",
            "Number of deposit addresses being scanned",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    @contextmanager
    def track_scan(self) -> Iterator[None]:
        """Track the duration of a scan pass and count it when it completes."""
        start = time.monotonic()
        try:
            yield
            self._scans.inc()
        finally:
            self._scan_duration.observe(time.monotonic() - start)

    def record_deposits(self, *, confirmed: int, unconfirmed: int) -> None:
        self._deposits.labels(state="confirmed").inc(confirmed)
        self._deposits.labels(state="unconfirmed").inc(unconfirmed)

    def record_sweep(self, *, ok: bool) -> None:
        self._sweeps.labels(outcome="ok" if ok else "failed").inc()

    def record_withdrawal(self) -> None:
        self._withdrawals.inc()

    def record_relink(self) -> None:
        self._relinks.inc()

    def set_cursor_height(self, height: int) -> None:
        self._cursor_height.set(height)

    def set_deposit_address_count(self, count: int) -> None:
        self._deposit_addresses.set(count)
