"""Abstract store — the operations the monitor and console need from storage.

Collections
───────────
  network_events  — classified events, immutable once inserted
  alerts          — one per labelled event; only status / acknowledged_at change
  blocked_ips     — blocklist entries; unblocking deactivates, never deletes
  network_stats   — periodic counter snapshots

Every backend failure (including timeouts) surfaces as ``StoreError``.
"""

from __future__ import annotations

import abc

from src.contracts.alert import Alert
from src.contracts.blocklist import BlocklistEntry
from src.contracts.enums import AlertStatus, ThreatLevel
from src.contracts.event import NetworkEvent
from src.contracts.stats import StatsSnapshot


class StoreError(RuntimeError):
    """A storage operation failed; callers treat all causes alike."""


def check_limit(limit: int) -> int:
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return limit


def check_classified(event: NetworkEvent) -> None:
    if not event.is_classified:
        raise StoreError("Refusing to persist an unclassified event")


class Store(abc.ABC):
    # ── events ────────────────────────────────

    @abc.abstractmethod
    def insert_event(self, event: NetworkEvent) -> NetworkEvent:
        """Persist a classified event and return the stored copy with its id."""

    @abc.abstractmethod
    def get_event(self, event_id: int) -> NetworkEvent | None: ...

    @abc.abstractmethod
    def recent_events(self, limit: int = 50) -> list[NetworkEvent]:
        """Newest first by timestamp."""

    # ── alerts ────────────────────────────────

    @abc.abstractmethod
    def insert_alert(self, alert: Alert) -> Alert: ...

    @abc.abstractmethod
    def acknowledge_alert(self, alert_id: int, at: str | None = None) -> Alert:
        """Mark a new alert acknowledged; raises StoreError for unknown ids."""

    @abc.abstractmethod
    def recent_alerts(
        self,
        limit: int = 10,
        status: AlertStatus | None = None,
        severity: ThreatLevel | None = None,
    ) -> list[Alert]:
        """Newest first by created_at, optionally filtered."""

    # ── blocklist ─────────────────────────────

    @abc.abstractmethod
    def add_blocked_ip(self, entry: BlocklistEntry) -> BlocklistEntry: ...

    @abc.abstractmethod
    def deactivate_blocked_ip(self, entry_id: int) -> BlocklistEntry:
        """Set is_active=False; raises StoreError for unknown ids."""

    @abc.abstractmethod
    def active_blocked_ips(self) -> list[BlocklistEntry]:
        """Active entries, most recently blocked first."""

    @abc.abstractmethod
    def is_ip_blocked(self, ip_address: str) -> bool: ...

    # ── stats ─────────────────────────────────

    @abc.abstractmethod
    def insert_stats(self, snapshot: StatsSnapshot) -> StatsSnapshot: ...

    @abc.abstractmethod
    def stats_history(self, limit: int = 20) -> list[StatsSnapshot]:
        """Newest first by recorded_at."""

    def close(self) -> None:
        """Release backend resources; a no-op by default."""
