"""CLI entry-point for the operator console.

Usage examples
--------------
python -m src.console --db data/monitor.db events --limit 20
python -m src.console --db data/monitor.db event 42
python -m src.console --db data/monitor.db alerts --filter new
python -m src.console --db data/monitor.db search 4444
python -m src.console --db data/monitor.db block 203.0.113.5 --reason "scanner"
python -m src.console --db data/monitor.db unblock 3
python -m src.console --db data/monitor.db ack 12
"""

from __future__ import annotations

import argparse
import sys

import pandas as pd

from src.console.commands import Notification, OperatorConsole
from src.console.frames import (
    ALERT_FILTERS,
    alerts_frame,
    blocked_frame,
    event_details,
    events_frame,
    parse_alert_filter,
    search_events,
    stats_frame,
)
from src.shared.config_loader import load_config, section
from src.shared.logger import setup_logging
from src.storage import SQLiteStore

EVENT_VIEW = ["id", "timestamp", "source_ip", "destination_ip", "protocol", "port",
              "threat_level", "status"]
ALERT_VIEW = ["id", "created_at", "severity", "status", "title", "message"]
BLOCKED_VIEW = ["id", "ip_address", "reason", "blocked_at"]
STATS_VIEW = ["recorded_at", "total_traffic_gb", "active_connections",
              "threats_detected", "threats_blocked"]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="netmon-console",
        description="Inspect monitor output and manage the IP blocklist",
    )
    p.add_argument("--config", default=None, help="Path to monitor.yaml.")
    p.add_argument("--db", default=None, help="SQLite database path (overrides config).")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default: WARNING",
    )
    sub = p.add_subparsers(dest="command", required=True)

    ev = sub.add_parser("events", help="Most recent events, newest first")
    ev.add_argument("--limit", type=int, default=50)

    de = sub.add_parser("event", help="All fields of one event")
    de.add_argument("event_id", type=int)

    al = sub.add_parser("alerts", help="Most recent alerts, newest first")
    al.add_argument("--limit", type=int, default=10)
    al.add_argument("--filter", default="all", choices=ALERT_FILTERS)

    se = sub.add_parser("search", help="Search recent events by any field")
    se.add_argument("term")
    se.add_argument("--limit", type=int, default=50)

    sub.add_parser("blocked", help="Active blocklist entries")

    st = sub.add_parser("stats", help="Persisted statistics snapshots")
    st.add_argument("--limit", type=int, default=20)

    bl = sub.add_parser("block", help="Block a source IP")
    bl.add_argument("ip")
    bl.add_argument("--reason", required=True)

    ub = sub.add_parser("unblock", help="Deactivate a blocklist entry")
    ub.add_argument("entry_id", type=int)

    ack = sub.add_parser("ack", help="Acknowledge an alert")
    ack.add_argument("alert_id", type=int)
    return p


def _show(df: pd.DataFrame, columns: list[str], empty: str) -> None:
    if df.empty:
        print(empty)
        return
    print(df[columns].to_string(index=False))


def _notify(note: Notification) -> int:
    print(note, file=sys.stdout if note.ok else sys.stderr)
    return 0 if note.ok else 1


def run(args: argparse.Namespace, store: SQLiteStore) -> int:
    console = OperatorConsole(store)
    cmd = args.command

    if cmd == "block":
        return _notify(console.block_ip(args.ip, args.reason))
    if cmd == "unblock":
        return _notify(console.unblock_ip(args.entry_id))
    if cmd == "ack":
        return _notify(console.acknowledge_alert(args.alert_id))

    if cmd == "event":
        event = store.get_event(args.event_id)
        if event is None:
            print(f"Error: event {args.event_id} not found", file=sys.stderr)
            return 1
        print(event_details(event).to_string())
        return 0
    if cmd == "events":
        _show(events_frame(store.recent_events(args.limit)), EVENT_VIEW, "No events recorded")
    elif cmd == "search":
        df = search_events(events_frame(store.recent_events(args.limit)), args.term)
        _show(df, EVENT_VIEW, f"No events matching {args.term!r}")
    elif cmd == "alerts":
        alerts = store.recent_alerts(args.limit, **parse_alert_filter(args.filter))
        _show(alerts_frame(alerts), ALERT_VIEW, "No alerts found")
    elif cmd == "blocked":
        _show(blocked_frame(store.active_blocked_ips()), BLOCKED_VIEW, "No IPs blocked")
    elif cmd == "stats":
        _show(stats_frame(store.stats_history(args.limit)), STATS_VIEW, "No stats recorded")
    return 0


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    cfg = load_config(args.config)
    storage_cfg = section(cfg, "storage")
    db_path = args.db or storage_cfg.get("db_path")
    if not db_path:
        print("Error: no database configured (use --db)", file=sys.stderr)
        sys.exit(2)

    store = SQLiteStore(db_path, timeout_sec=float(storage_cfg.get("timeout_sec", 5.0)))
    try:
        code = run(args, store)
    finally:
        store.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
