"""In-process store used by tests and by the monitor when no database is given."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import replace

from src.contracts.alert import Alert, AlertStateError
from src.contracts.blocklist import BlocklistEntry
from src.contracts.enums import AlertStatus, ThreatLevel
from src.contracts.event import NetworkEvent
from src.contracts.stats import StatsSnapshot
from src.storage.base import Store, StoreError, check_classified, check_limit

log = logging.getLogger(__name__)


class MemoryStore(Store):
    """Thread-safe dict-backed store with autoincrement ids per collection.

    Every record handed out is a copy; stored records change only through
    the store operations.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: dict[int, NetworkEvent] = {}
        self._alerts: dict[int, Alert] = {}
        self._blocked: dict[int, BlocklistEntry] = {}
        self._stats: dict[int, StatsSnapshot] = {}
        self._ids = {
            name: itertools.count(1) for name in ("events", "alerts", "blocked", "stats")
        }

    # ── events ────────────────────────────────

    def insert_event(self, event: NetworkEvent) -> NetworkEvent:
        check_classified(event)
        with self._lock:
            stored = replace(
                event, id=next(self._ids["events"]), threat_labels=list(event.threat_labels)
            )
            self._events[stored.id] = stored
        return replace(stored, threat_labels=list(stored.threat_labels))

    def get_event(self, event_id: int) -> NetworkEvent | None:
        with self._lock:
            ev = self._events.get(event_id)
        return replace(ev, threat_labels=list(ev.threat_labels)) if ev else None

    def recent_events(self, limit: int = 50) -> list[NetworkEvent]:
        check_limit(limit)
        with self._lock:
            rows = sorted(self._events.values(), key=lambda e: (e.timestamp, e.id), reverse=True)
        return [replace(e, threat_labels=list(e.threat_labels)) for e in rows[:limit]]

    # ── alerts ────────────────────────────────

    def insert_alert(self, alert: Alert) -> Alert:
        with self._lock:
            if alert.event_id not in self._events:
                raise StoreError(f"Alert references unknown event {alert.event_id}")
            stored = replace(alert, id=next(self._ids["alerts"]))
            self._alerts[stored.id] = stored
        return replace(stored)

    def acknowledge_alert(self, alert_id: int, at: str | None = None) -> Alert:
        with self._lock:
            current = self._alerts.get(alert_id)
            if current is None:
                raise StoreError(f"Unknown alert {alert_id}")
            try:
                updated = current.acknowledged(at)
            except AlertStateError as exc:
                raise StoreError(str(exc)) from exc
            self._alerts[alert_id] = updated
        return replace(updated)

    def recent_alerts(
        self,
        limit: int = 10,
        status: AlertStatus | None = None,
        severity: ThreatLevel | None = None,
    ) -> list[Alert]:
        check_limit(limit)
        with self._lock:
            rows = [
                a for a in self._alerts.values()
                if (status is None or a.status is status)
                and (severity is None or a.severity is severity)
            ]
        rows.sort(key=lambda a: (a.created_at, a.id), reverse=True)
        return [replace(a) for a in rows[:limit]]

    # ── blocklist ─────────────────────────────

    def add_blocked_ip(self, entry: BlocklistEntry) -> BlocklistEntry:
        with self._lock:
            stored = replace(entry, id=next(self._ids["blocked"]))
            self._blocked[stored.id] = stored
        log.info("Blocked %s (%s)", stored.ip_address, stored.reason)
        return replace(stored)

    def deactivate_blocked_ip(self, entry_id: int) -> BlocklistEntry:
        with self._lock:
            current = self._blocked.get(entry_id)
            if current is None:
                raise StoreError(f"Unknown blocklist entry {entry_id}")
            updated = replace(current, is_active=False)
            self._blocked[entry_id] = updated
        log.info("Unblocked %s (entry %d)", updated.ip_address, entry_id)
        return replace(updated)

    def active_blocked_ips(self) -> list[BlocklistEntry]:
        with self._lock:
            rows = [b for b in self._blocked.values() if b.is_active]
        rows.sort(key=lambda b: (b.blocked_at, b.id), reverse=True)
        return [replace(b) for b in rows]

    def is_ip_blocked(self, ip_address: str) -> bool:
        with self._lock:
            return any(
                b.is_active and b.ip_address == ip_address for b in self._blocked.values()
            )

    # ── stats ─────────────────────────────────

    def insert_stats(self, snapshot: StatsSnapshot) -> StatsSnapshot:
        with self._lock:
            stored = replace(snapshot, id=next(self._ids["stats"]))
            self._stats[stored.id] = stored
        return stored

    def stats_history(self, limit: int = 20) -> list[StatsSnapshot]:
        check_limit(limit)
        with self._lock:
            rows = sorted(self._stats.values(), key=lambda s: (s.recorded_at, s.id), reverse=True)
        return rows[:limit]
