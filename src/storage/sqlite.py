"""SQLite-backed store for the four monitor collections."""

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import threading
from typing import Any

from src.contracts.alert import Alert, AlertStateError
from src.contracts.blocklist import BlocklistEntry
from src.contracts.enums import AlertStatus, ThreatLevel
from src.contracts.event import NetworkEvent, utc_now_iso
from src.contracts.stats import StatsSnapshot
from src.storage.base import Store, StoreError, check_classified, check_limit

log = logging.getLogger(__name__)

SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS network_events (
  id             INTEGER PRIMARY KEY AUTOINCREMENT,
  source_ip      TEXT NOT NULL,
  destination_ip TEXT NOT NULL,
  protocol       TEXT NOT NULL,
  port           INTEGER NOT NULL,
  packet_size    INTEGER NOT NULL,
  timestamp      TEXT NOT NULL,
  threat_level   TEXT NOT NULL,
  threat_type    TEXT,
  is_blocked     INTEGER NOT NULL DEFAULT 0,
  description    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS alerts (
  id              INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id        INTEGER NOT NULL REFERENCES network_events(id),
  severity        TEXT NOT NULL,
  title           TEXT NOT NULL,
  message         TEXT NOT NULL,
  status          TEXT NOT NULL DEFAULT 'new',
  created_at      TEXT NOT NULL,
  acknowledged_at TEXT
);

CREATE TABLE IF NOT EXISTS blocked_ips (
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  ip_address TEXT NOT NULL,
  reason     TEXT NOT NULL,
  is_active  INTEGER NOT NULL DEFAULT 1,
  blocked_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS network_stats (
  id                 INTEGER PRIMARY KEY AUTOINCREMENT,
  total_traffic      INTEGER NOT NULL,
  active_connections INTEGER NOT NULL,
  threats_detected   INTEGER NOT NULL,
  threats_blocked    INTEGER NOT NULL,
  recorded_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_timestamp ON network_events(timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_alerts_created ON alerts(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_blocked_ip_active ON blocked_ips(ip_address, is_active);
"""


class SQLiteStore(Store):
    """One shared connection serialised by a lock so the monitor thread,
    the stats timer and operator commands can all use the same store."""

    def __init__(self, db_path: str = ":memory:", timeout_sec: float = 5.0) -> None:
        self.db_path = db_path
        if db_path != ":memory:":
            parent = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(parent, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, timeout=timeout_sec, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON;")
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {db_path}: {exc}") from exc
        log.info("SQLite store ready at %s", db_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── low-level helpers ─────────────────────

    def _write(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Cursor:
        with self._lock:
            try:
                cur = self._conn.execute(sql, params)
                self._conn.commit()
                return cur
            except sqlite3.Error as exc:
                with contextlib.suppress(sqlite3.Error):
                    self._conn.rollback()
                raise StoreError(str(exc)) from exc

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        with self._lock:
            try:
                cur = self._conn.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def _one(self, sql: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    # ── events ────────────────────────────────

    def insert_event(self, event: NetworkEvent) -> NetworkEvent:
        check_classified(event)
        row = event.to_row()
        cur = self._write(
            """
            INSERT INTO network_events (source_ip, destination_ip, protocol, port,
                packet_size, timestamp, threat_level, threat_type, is_blocked, description)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["source_ip"],
                row["destination_ip"],
                row["protocol"],
                row["port"],
                row["packet_size"],
                row["timestamp"],
                row["threat_level"],
                row["threat_type"],
                int(row["is_blocked"]),
                row["description"],
            ),
        )
        return NetworkEvent.from_row({**row, "id": cur.lastrowid})

    def get_event(self, event_id: int) -> NetworkEvent | None:
        row = self._one("SELECT * FROM network_events WHERE id = ?", (event_id,))
        return NetworkEvent.from_row(row) if row else None

    def recent_events(self, limit: int = 50) -> list[NetworkEvent]:
        check_limit(limit)
        rows = self._query(
            "SELECT * FROM network_events ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [NetworkEvent.from_row(r) for r in rows]

    # ── alerts ────────────────────────────────

    def insert_alert(self, alert: Alert) -> Alert:
        row = alert.to_row()
        cur = self._write(
            """
            INSERT INTO alerts (event_id, severity, title, message, status,
                created_at, acknowledged_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["event_id"],
                row["severity"],
                row["title"],
                row["message"],
                row["status"],
                row["created_at"],
                row["acknowledged_at"],
            ),
        )
        return Alert.from_row({**row, "id": cur.lastrowid})

    def _get_alert(self, alert_id: int) -> Alert | None:
        row = self._one("SELECT * FROM alerts WHERE id = ?", (alert_id,))
        return Alert.from_row(row) if row else None

    def acknowledge_alert(self, alert_id: int, at: str | None = None) -> Alert:
        current = self._get_alert(alert_id)
        if current is None:
            raise StoreError(f"Unknown alert {alert_id}")
        try:
            updated = current.acknowledged(at or utc_now_iso())
        except AlertStateError as exc:
            raise StoreError(str(exc)) from exc
        # the status guard keeps a concurrent second acknowledge from overwriting
        cur = self._write(
            "UPDATE alerts SET status = ?, acknowledged_at = ? WHERE id = ? AND status = ?",
            (updated.status.value, updated.acknowledged_at, alert_id, AlertStatus.NEW.value),
        )
        if cur.rowcount == 0:
            raise StoreError(f"Alert {alert_id} is already acknowledged")
        return updated

    def recent_alerts(
        self,
        limit: int = 10,
        status: AlertStatus | None = None,
        severity: ThreatLevel | None = None,
    ) -> list[Alert]:
        check_limit(limit)
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if severity is not None:
            clauses.append("severity = ?")
            params.append(severity.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._query(
            f"SELECT * FROM alerts {where} ORDER BY created_at DESC, id DESC LIMIT ?",
            (*params, limit),
        )
        return [Alert.from_row(r) for r in rows]

    # ── blocklist ─────────────────────────────

    def add_blocked_ip(self, entry: BlocklistEntry) -> BlocklistEntry:
        cur = self._write(
            "INSERT INTO blocked_ips (ip_address, reason, is_active, blocked_at) "
            "VALUES (?, ?, ?, ?)",
            (entry.ip_address, entry.reason, int(entry.is_active), entry.blocked_at),
        )
        log.info("Blocked %s (%s)", entry.ip_address, entry.reason)
        return BlocklistEntry.from_row({**entry.to_row(), "id": cur.lastrowid})

    def deactivate_blocked_ip(self, entry_id: int) -> BlocklistEntry:
        cur = self._write("UPDATE blocked_ips SET is_active = 0 WHERE id = ?", (entry_id,))
        if cur.rowcount == 0:
            raise StoreError(f"Unknown blocklist entry {entry_id}")
        row = self._one("SELECT * FROM blocked_ips WHERE id = ?", (entry_id,))
        if row is None:
            raise StoreError(f"Unknown blocklist entry {entry_id}")
        log.info("Unblocked %s (entry %d)", row["ip_address"], entry_id)
        return BlocklistEntry.from_row(row)

    def active_blocked_ips(self) -> list[BlocklistEntry]:
        rows = self._query(
            "SELECT * FROM blocked_ips WHERE is_active = 1 ORDER BY blocked_at DESC, id DESC"
        )
        return [BlocklistEntry.from_row(r) for r in rows]

    def is_ip_blocked(self, ip_address: str) -> bool:
        row = self._one(
            "SELECT 1 AS hit FROM blocked_ips WHERE ip_address = ? AND is_active = 1 LIMIT 1",
            (ip_address,),
        )
        return row is not None

    # ── stats ─────────────────────────────────

    def insert_stats(self, snapshot: StatsSnapshot) -> StatsSnapshot:
        row = snapshot.to_row()
        cur = self._write(
            """
            INSERT INTO network_stats (total_traffic, active_connections,
                threats_detected, threats_blocked, recorded_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                row["total_traffic"],
                row["active_connections"],
                row["threats_detected"],
                row["threats_blocked"],
                row["recorded_at"],
            ),
        )
        return StatsSnapshot.from_row({**row, "id": cur.lastrowid})

    def stats_history(self, limit: int = 20) -> list[StatsSnapshot]:
        check_limit(limit)
        rows = self._query(
            "SELECT * FROM network_stats ORDER BY recorded_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [StatsSnapshot.from_row(r) for r in rows]
