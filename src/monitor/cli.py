"""CLI entry-point for the network monitor.

Usage examples
--------------
# Live mode until Ctrl+C, persisting to SQLite:
python -m src.monitor --db data/monitor.db

# Live mode for one minute with a fixed seed:
python -m src.monitor --duration-sec 60 --seed 7

# Batch mode: classify 500 events back to back (no delays):
python -m src.monitor --events 500
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Any

from src.contracts.stats import StatsSnapshot
from src.emulator.traffic import TrafficGenerator
from src.monitor.pipeline import NetworkMonitor
from src.shared.config_loader import load_config, section
from src.shared.logger import setup_logging
from src.shared.seed import init_seed
from src.storage import MemoryStore, SQLiteStore, Store

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="netmon",
        description="Synthetic network threat monitor: generate, classify, alert",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to monitor.yaml. Default: config/monitor.yaml if present.",
    )
    p.add_argument(
        "--db",
        default=None,
        help="SQLite database path. Overrides storage.db_path; "
             "an in-memory store is used when neither is set.",
    )
    p.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible traffic (default: unseeded).",
    )
    p.add_argument(
        "--duration-sec",
        type=float,
        default=None,
        help="Stop the live monitor after this many seconds (default: run until Ctrl+C).",
    )
    p.add_argument(
        "--events",
        type=int,
        default=None,
        help="Batch mode: process this many events without delays and exit.",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default: INFO",
    )
    return p


def open_store(cfg: dict[str, Any], db_path: str | None = None) -> Store:
    """SQLite store when a path is configured, otherwise an in-memory one."""
    storage_cfg = section(cfg, "storage")
    path = db_path or storage_cfg.get("db_path")
    if not path:
        log.info("No database configured, using in-memory store")
        return MemoryStore()
    return SQLiteStore(path, timeout_sec=float(storage_cfg.get("timeout_sec", 5.0)))


def format_stats(stats: StatsSnapshot) -> str:
    return (
        f"traffic: {stats.total_traffic / (1024 * 1024):.2f} MB | "
        f"active connections: {stats.active_connections} | "
        f"threats detected: {stats.threats_detected} | "
        f"threats blocked: {stats.threats_blocked}"
    )


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    cfg = load_config(args.config)
    rng = init_seed(args.seed)
    store = open_store(cfg, args.db)
    generator = TrafficGenerator(section(cfg, "generator"), rng)
    monitor = NetworkMonitor.from_config(store, generator, cfg, rng=rng)

    try:
        if args.events is not None:
            results = monitor.run_cycles(args.events)
            alerts = sum(1 for r in results if r.alert is not None)
            print(f"Batch complete: {len(results)} events, {alerts} alerts")
        else:
            print("Network monitor running. Press Ctrl+C to stop.")
            monitor.start()
            try:
                if args.duration_sec is not None:
                    time.sleep(args.duration_sec)
                else:
                    while True:
                        time.sleep(1.0)
            except KeyboardInterrupt:
                print("\nStopping monitor...")
            finally:
                monitor.stop()
        monitor.flush_stats()
        print(format_stats(monitor.get_stats()))
    finally:
        store.close()


if __name__ == "__main__":
    main()
