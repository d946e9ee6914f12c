"""Per-backend request counters."""

from __future__ import annotations

from .types import BackendMetrics


class MetricsTracker:
    """Counts requests for one backend instance.

    Counters only ever grow; they are not reset by shutdown or reload.
    Callers run on a single event loop, so plain attribute updates suffice.
    """

    def __init__(self) -> None:
        self._pending = 0
        self._total = 0
        self._failed = 0
        self._tps_sum = 0.0
        self._tps_samples = 0

    def request_started(self) -> None:
        self._pending += 1
        self._total += 1

    def request_succeeded(self, tokens_per_second: float) -> None:
        self._pending = max(self._pending - 1, 0)
        self._tps_sum += float(tokens_per_second)
        self._tps_samples += 1

    def request_failed(self) -> None:
        self._pending = max(self._pending - 1, 0)
        self._failed += 1

    def snapshot(self) -> BackendMetrics:
        average = self._tps_sum / self._tps_samples if self._tps_samples else 0.0
        return BackendMetrics(
            pending_requests=self._pending,
            total_requests=self._total,
            failed_requests=self._failed,
            average_tps=average,
        )
