"""Tabular views of stored events, alerts, blocklist and stats history."""

from __future__ import annotations

from typing import Any

import pandas as pd

from src.contracts.alert import ALERT_COLUMNS, Alert
from src.contracts.blocklist import BLOCKLIST_COLUMNS, BlocklistEntry
from src.contracts.enums import AlertStatus, ThreatLevel
from src.contracts.event import EVENT_COLUMNS, NetworkEvent
from src.contracts.stats import STATS_COLUMNS, StatsSnapshot

ALERT_FILTERS = ["all", AlertStatus.NEW.value, *(lvl.value for lvl in ThreatLevel)]


def _frame(rows: list[dict], columns: list[str], time_cols: tuple[str, ...]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=columns)
    for col in time_cols:
        df[col] = pd.to_datetime(df[col], utc=True, errors="coerce")
    return df


def events_frame(events: list[NetworkEvent]) -> pd.DataFrame:
    df = _frame([e.to_row() for e in events], EVENT_COLUMNS, ("timestamp",))
    df["status"] = df["is_blocked"].map({True: "Blocked", False: "Allowed"})
    return df


def alerts_frame(alerts: list[Alert]) -> pd.DataFrame:
    return _frame([a.to_row() for a in alerts], ALERT_COLUMNS, ("created_at", "acknowledged_at"))


def blocked_frame(entries: list[BlocklistEntry]) -> pd.DataFrame:
    return _frame([b.to_row() for b in entries], BLOCKLIST_COLUMNS, ("blocked_at",))


def event_details(event: NetworkEvent) -> pd.Series:
    """One event as a field -> value series for the details view."""
    row = event.to_row()
    row["status"] = "Blocked" if event.is_blocked else "Allowed"
    row["threat_type"] = event.threat_type or "-"
    return pd.Series(row, name=event.id)


def stats_frame(history: list[StatsSnapshot]) -> pd.DataFrame:
    df = _frame([s.to_row() for s in history], STATS_COLUMNS, ("recorded_at",))
    df["total_traffic_gb"] = df["total_traffic"] / (1024 ** 3)
    return df


def parse_alert_filter(choice: str = "all") -> dict[str, Any]:
    """Map the alert filter box value to ``Store.recent_alerts`` keyword args.

    ``all`` means no filter, ``new`` filters on status, anything else on severity.
    """
    if choice not in ALERT_FILTERS:
        raise ValueError(f"Unknown alert filter {choice!r}; expected one of {ALERT_FILTERS}")
    if choice == "all":
        return {}
    if choice == AlertStatus.NEW.value:
        return {"status": AlertStatus.NEW}
    return {"severity": ThreatLevel(choice)}


def search_events(df: pd.DataFrame, term: str) -> pd.DataFrame:
    """Rows where any column contains *term*, case-insensitively."""
    term = term.strip().lower()
    if not term or df.empty:
        return df.copy()
    text = df.astype(str).apply(lambda col: col.str.lower())
    mask = text.apply(lambda col: col.str.contains(term, regex=False)).any(axis=1)
    return df.loc[mask].copy()
