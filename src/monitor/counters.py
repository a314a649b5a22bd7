"""Running traffic counters owned by one NetworkMonitor."""

from __future__ import annotations

import threading

from src.contracts.stats import StatsSnapshot


class TrafficCounters:
    """Cumulative counters plus the resampled active-connection estimate.

    All four values for one event change inside a single critical section
    and ``snapshot()`` reads under the same lock, so a snapshot never mixes
    pre- and post-update values of one event.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_traffic = 0
        self._active_connections = 0
        self._threats_detected = 0
        self._threats_blocked = 0

    def record(
        self,
        packet_size: int,
        *,
        detected: bool,
        blocked: bool,
        active_connections: int,
    ) -> None:
        if packet_size < 0:
            raise ValueError(f"packet_size must be >= 0, got {packet_size}")
        if blocked and not detected:
            raise ValueError("a blocked threat must also count as detected")
        with self._lock:
            self._total_traffic += packet_size
            self._active_connections = active_connections
            if detected:
                self._threats_detected += 1
            if blocked:
                self._threats_blocked += 1

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                total_traffic=self._total_traffic,
                active_connections=self._active_connections,
                threats_detected=self._threats_detected,
                threats_blocked=self._threats_blocked,
            )
