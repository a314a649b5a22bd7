"""Monitor pipeline — drives the generator through the classifier into the store.

One cycle
─────────
  next event → classify (fresh blocklist lookup) → enrich event →
  persist event → [labels] persist alert, count threat (and block) →
  add payload to traffic → resample active connections → wait.

Threads
───────
  monitor  — owns the cycle above; waits the generator's irregular delay
             between cycles on the stop flag, so ``stop()`` prevents the
             next cycle but never interrupts the current one.
  stats    — every ``stats_interval_sec`` persists a snapshot of the
             counters.  It only reads them.

Store failures never escape a cycle.  A failed event insert skips the
alert and the threat counters for that event; the traffic counter still
grows because the bytes were observed.
"""

from __future__ import annotations

import logging
import random as _random_mod
import threading
from dataclasses import dataclass
from typing import Any

from src.analyzer.classifier import apply_classification, classify
from src.contracts.alert import DEFAULT_ALERT_TITLE, Alert
from src.contracts.classification import ClassificationResult
from src.contracts.enums import AlertStatus, ThreatLevel
from src.contracts.event import NetworkEvent
from src.contracts.stats import StatsSnapshot
from src.emulator.traffic import TrafficGenerator
from src.monitor.counters import TrafficCounters
from src.storage.base import Store, StoreError

log = logging.getLogger(__name__)

DEFAULT_STATS_INTERVAL_SEC = 10.0
DEFAULT_ACTIVE_CONNECTIONS = (100, 600)


@dataclass(slots=True)
class CycleResult:
    """Outcome of one pipeline cycle."""

    event: NetworkEvent
    result: ClassificationResult
    stored: NetworkEvent | None = None
    alert: Alert | None = None

    @property
    def persisted(self) -> bool:
        return self.stored is not None


class NetworkMonitor:
    """Owns the running counters and the generate → persist control loop."""

    def __init__(
        self,
        store: Store,
        generator: TrafficGenerator,
        *,
        stats_interval_sec: float = DEFAULT_STATS_INTERVAL_SEC,
        active_connections: tuple[int, int] = DEFAULT_ACTIVE_CONNECTIONS,
        rng: _random_mod.Random | None = None,
        fail_closed: bool = False,
    ) -> None:
        if stats_interval_sec <= 0:
            raise ValueError(f"stats_interval_sec must be > 0, got {stats_interval_sec}")
        lo, hi = active_connections
        if lo < 0 or hi <= lo:
            raise ValueError(f"Invalid active_connections range: {active_connections}")

        self.store = store
        self.generator = generator
        self.stats_interval_sec = stats_interval_sec
        self.active_connections = (int(lo), int(hi))
        self.fail_closed = fail_closed
        self.rng = rng or _random_mod.Random()

        self._counters = TrafficCounters()
        self._events = generator.stream()
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._stop.set()
        self._worker: threading.Thread | None = None
        self._ticker: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        store: Store,
        generator: TrafficGenerator,
        cfg: dict[str, Any],
        rng: _random_mod.Random | None = None,
    ) -> NetworkMonitor:
        """Build a monitor from the ``monitor`` and ``classifier`` config sections."""
        mon = cfg.get("monitor") or {}
        clf = cfg.get("classifier") or {}
        conns = mon.get("active_connections", list(DEFAULT_ACTIVE_CONNECTIONS))
        return cls(
            store,
            generator,
            stats_interval_sec=float(mon.get("stats_interval_sec", DEFAULT_STATS_INTERVAL_SEC)),
            active_connections=(int(conns[0]), int(conns[1])),
            rng=rng,
            fail_closed=bool(clf.get("fail_closed_on_lookup_error", False)),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        """Start the monitor and stats threads; a no-op while already running.

        Threads left over from a ``stop()`` whose timeout expired are joined
        first, so two cycles never run at the same time.
        """
        with self._state_lock:
            if self.is_running:
                log.debug("Monitor already running, start() ignored")
                return
            current = threading.current_thread()
            for t in (self._worker, self._ticker):
                if t is not None and t is not current and t.is_alive():
                    log.info("Waiting for previous %s thread to finish", t.name)
                    t.join()
            stop = threading.Event()
            self._stop = stop
            self._worker = threading.Thread(
                target=self._run_loop, args=(stop,), name="monitor", daemon=True
            )
            self._ticker = threading.Thread(
                target=self._run_stats, args=(stop,), name="stats", daemon=True
            )
            self._worker.start()
            self._ticker.start()
        log.info("Monitor started (stats every %.1fs)", self.stats_interval_sec)

    def stop(self, timeout: float | None = None) -> None:
        """Stop scheduling new cycles and wait for the in-flight one.

        Args:
            timeout: Max seconds to wait for each thread; None waits forever.
        """
        with self._state_lock:
            self._stop.set()
            threads = [t for t in (self._worker, self._ticker) if t is not None]
        current = threading.current_thread()
        for t in threads:
            if t is not current:
                t.join(timeout)
        log.info("Monitor stopped")

    def _run_loop(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.process_event(next(self._events))
            except Exception:
                log.exception("Unexpected error in monitor cycle")
            if stop.wait(self.generator.next_delay()):
                break

    def _run_stats(self, stop: threading.Event) -> None:
        while not stop.wait(self.stats_interval_sec):
            self.flush_stats()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    def process_event(self, event: NetworkEvent) -> CycleResult:
        """Classify, persist and count one event."""
        result = classify(event, self.store.is_ip_blocked, fail_closed=self.fail_closed)
        apply_classification(event, result)
        cycle = CycleResult(event=event, result=result)

        try:
            cycle.stored = self.store.insert_event(event)
        except StoreError as exc:
            log.warning(
                "Event %s -> %s:%d not persisted: %s",
                event.source_ip, event.destination_ip, event.port, exc,
            )

        detected = cycle.persisted and result.has_threats
        if detected:
            cycle.alert = self._raise_alert(cycle.stored, result)

        self._counters.record(
            event.packet_size,
            detected=detected,
            blocked=detected and result.should_block,
            active_connections=self.rng.randrange(*self.active_connections),
        )

        log.debug(
            "Event %s %s:%d %s [%s] score=%d",
            event.source_ip, event.destination_ip, event.port,
            result.threat_level.value, result.threat_type or "-", result.score,
        )
        return cycle

    def _raise_alert(self, stored: NetworkEvent, result: ClassificationResult) -> Alert | None:
        alert = Alert(
            event_id=stored.id,
            severity=result.threat_level,
            title=result.labels[0].value if result.labels else DEFAULT_ALERT_TITLE,
            message=stored.description,
        )
        try:
            alert = self.store.insert_alert(alert)
        except StoreError as exc:
            log.warning("Alert for event %s not persisted: %s", stored.id, exc)
            return None
        log.info("[%s] %s: %s", alert.severity.value, alert.title, alert.message)
        return alert

    def run_cycles(self, count: int) -> list[CycleResult]:
        """Process *count* generated events back to back, without delays."""
        if self.is_running:
            raise RuntimeError("run_cycles() cannot be used while the monitor loop is running")
        return [self.process_event(next(self._events)) for _ in range(count)]

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def flush_stats(self) -> StatsSnapshot | None:
        """Persist the current counters; a failure is logged and dropped."""
        snapshot = self._counters.snapshot()
        try:
            stored = self.store.insert_stats(snapshot)
        except StoreError as exc:
            log.warning("Stats snapshot dropped: %s", exc)
            return None
        log.debug(
            "Stats: traffic=%d bytes, threats=%d, blocked=%d",
            stored.total_traffic, stored.threats_detected, stored.threats_blocked,
        )
        return stored

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------

    def get_stats(self) -> StatsSnapshot:
        """Live in-memory counters (not the persisted history)."""
        return self._counters.snapshot()

    def get_recent_events(self, limit: int = 50) -> list[NetworkEvent]:
        try:
            return self.store.recent_events(limit)
        except StoreError as exc:
            log.warning("Recent events unavailable: %s", exc)
            return []

    def get_recent_alerts(
        self,
        limit: int = 10,
        status: AlertStatus | None = None,
        severity: ThreatLevel | None = None,
    ) -> list[Alert]:
        try:
            return self.store.recent_alerts(limit, status=status, severity=severity)
        except StoreError as exc:
            log.warning("Recent alerts unavailable: %s", exc)
            return []
