"""Shared fixtures for the network threat monitor tests."""

from __future__ import annotations

import random

import pytest

from src.contracts.alert import Alert
from src.contracts.enums import Protocol, ThreatLevel
from src.contracts.event import NetworkEvent
from src.emulator.traffic import TrafficGenerator
from src.monitor.pipeline import NetworkMonitor
from src.storage import MemoryStore, SQLiteStore
from src.storage.base import StoreError

# ── Helper: create events with sensible defaults ───────────────────────


def make_event(
    *,
    source_ip: str = "192.168.1.20",
    destination_ip: str = "192.168.1.10",
    protocol: Protocol = Protocol.HTTPS,
    port: int = 5432,
    packet_size: int = 500,
    timestamp: str = "2026-02-26T10:00:00.000000Z",
) -> NetworkEvent:
    """Unclassified event; the defaults score 0 and trigger no label."""
    return NetworkEvent(
        source_ip=source_ip,
        destination_ip=destination_ip,
        protocol=protocol,
        port=port,
        packet_size=packet_size,
        timestamp=timestamp,
    )


def make_alert(
    *,
    event_id: int = 1,
    severity: ThreatLevel = ThreatLevel.HIGH,
    title: str = "Suspicious Port Activity",
    message: str = "Connection attempt on suspicious port 4444 from 203.0.113.5",
    created_at: str = "2026-02-26T10:00:00.000000Z",
) -> Alert:
    return Alert(
        event_id=event_id,
        severity=severity,
        title=title,
        message=message,
        created_at=created_at,
    )


def ts(second: int) -> str:
    """Fixed-width timestamp *second* seconds after 10:00:00."""
    return f"2026-02-26T10:{second // 60:02d}:{second % 60:02d}.000000Z"


def never_blocked(ip: str) -> bool:
    return False


# ── Fault injection ─────────────────────────────────────────────────────


class FlakyStore(MemoryStore):
    """MemoryStore whose chosen operations fail on chosen call numbers (1-based)."""

    def __init__(self, fail_on: dict[str, set[int]] | None = None) -> None:
        super().__init__()
        self.fail_on = fail_on or {}
        self.calls: dict[str, int] = {}

    def _maybe_fail(self, op: str) -> None:
        n = self.calls.get(op, 0) + 1
        self.calls[op] = n
        if n in self.fail_on.get(op, set()):
            raise StoreError(f"simulated {op} failure #{n}")

    def insert_event(self, event):
        self._maybe_fail("insert_event")
        return super().insert_event(event)

    def insert_alert(self, alert):
        self._maybe_fail("insert_alert")
        return super().insert_alert(alert)

    def insert_stats(self, snapshot):
        self._maybe_fail("insert_stats")
        return super().insert_stats(snapshot)

    def is_ip_blocked(self, ip_address):
        self._maybe_fail("is_ip_blocked")
        return super().is_ip_blocked(ip_address)


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def generator(rng) -> TrafficGenerator:
    return TrafficGenerator({"delay_sec": [0.0, 0.01]}, rng)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "memory":
        yield MemoryStore()
    else:
        s = SQLiteStore(str(tmp_path / "monitor.db"))
        yield s
        s.close()


@pytest.fixture
def monitor(memory_store, generator, rng) -> NetworkMonitor:
    return NetworkMonitor(memory_store, generator, stats_interval_sec=0.05, rng=rng)
