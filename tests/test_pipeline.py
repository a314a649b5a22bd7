"""Tests for src.monitor — counters, per-event cycle, control loop, stats flush."""

from __future__ import annotations

import random
import threading
import time

import pytest

from src.contracts.blocklist import BlocklistEntry
from src.contracts.enums import AlertStatus, Protocol, ThreatLabel, ThreatLevel
from src.emulator.traffic import TrafficGenerator
from src.monitor.counters import TrafficCounters
from src.monitor.pipeline import NetworkMonitor
from src.storage import MemoryStore
from src.storage.base import StoreError
from tests.conftest import FlakyStore, make_event


def wait_until(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class SlowStore(MemoryStore):
    """MemoryStore whose event inserts take *delay* seconds; tracks overlapping calls."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._count_lock = threading.Lock()

    def insert_event(self, event):
        with self._count_lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delay)
            return super().insert_event(event)
        finally:
            with self._count_lock:
                self.in_flight -= 1


# ═══════════════════════════════════════════════════════════════════════════
#  TrafficCounters
# ═══════════════════════════════════════════════════════════════════════════


class TestTrafficCounters:
    def test_starts_at_zero(self):
        snap = TrafficCounters().snapshot()
        assert (snap.total_traffic, snap.active_connections,
                snap.threats_detected, snap.threats_blocked) == (0, 0, 0, 0)

    def test_record_accumulates(self):
        c = TrafficCounters()
        c.record(100, detected=False, blocked=False, active_connections=150)
        c.record(250, detected=True, blocked=True, active_connections=420)
        c.record(50, detected=True, blocked=False, active_connections=101)
        snap = c.snapshot()
        assert snap.total_traffic == 400
        assert snap.active_connections == 101
        assert snap.threats_detected == 2
        assert snap.threats_blocked == 1

    def test_blocked_implies_detected(self):
        with pytest.raises(ValueError):
            TrafficCounters().record(1, detected=False, blocked=True, active_connections=100)

    def test_snapshot_is_consistent_under_concurrency(self):
        c = TrafficCounters()
        stop = threading.Event()
        bad: list = []

        def writer():
            while not stop.is_set():
                # each event adds 10 bytes and one detected threat
                c.record(10, detected=True, blocked=False, active_connections=100)

        def reader():
            while not stop.is_set():
                s = c.snapshot()
                if s.total_traffic != 10 * s.threats_detected:
                    bad.append(s)

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        time.sleep(0.2)
        stop.set()
        for t in threads:
            t.join()
        assert bad == []


# ═══════════════════════════════════════════════════════════════════════════
#  One cycle
# ═══════════════════════════════════════════════════════════════════════════


class TestProcessEvent:
    def test_benign_event_persisted_without_alert(self, monitor, memory_store):
        cycle = monitor.process_event(make_event(packet_size=700))
        assert cycle.persisted
        assert cycle.alert is None
        stored = memory_store.get_event(cycle.stored.id)
        assert stored.threat_level is ThreatLevel.LOW
        assert stored.description == "Normal HTTPS traffic from 192.168.1.20"
        stats = monitor.get_stats()
        assert stats.total_traffic == 700
        assert stats.threats_detected == 0
        assert 100 <= stats.active_connections < 600

    def test_labelled_event_raises_alert(self, monitor, memory_store):
        cycle = monitor.process_event(make_event(port=4444, protocol=Protocol.TCP))
        alert = cycle.alert
        assert alert is not None
        assert alert.event_id == cycle.stored.id
        assert alert.severity is ThreatLevel.MEDIUM
        assert alert.title == ThreatLabel.SUSPICIOUS_PORT.value
        assert alert.message == cycle.stored.description
        assert alert.status is AlertStatus.NEW
        assert memory_store.recent_alerts(10) == [alert]
        assert monitor.get_stats().threats_detected == 1
        assert monitor.get_stats().threats_blocked == 0

    def test_critical_event_counts_as_blocked(self, monitor):
        ev = make_event(
            port=6667, protocol=Protocol.ICMP, packet_size=1_500,
            source_ip="203.0.113.5", destination_ip="192.168.1.10",
        )
        cycle = monitor.process_event(ev)
        assert cycle.stored.is_blocked
        assert cycle.alert.severity is ThreatLevel.CRITICAL
        assert monitor.get_stats().threats_blocked == 1

    def test_blocklisted_source_alert(self, monitor, memory_store):
        memory_store.add_blocked_ip(BlocklistEntry("203.0.113.5", "known scanner"))
        cycle = monitor.process_event(make_event(source_ip="203.0.113.5"))
        assert cycle.alert.title == ThreatLabel.BLOCKED_IP.value
        assert cycle.alert.severity is ThreatLevel.CRITICAL
        assert cycle.stored.is_blocked

    def test_unblock_applies_to_next_event(self, monitor, memory_store):
        entry = memory_store.add_blocked_ip(BlocklistEntry("203.0.113.5", "temp"))
        assert monitor.process_event(make_event(source_ip="203.0.113.5")).stored.is_blocked
        memory_store.deactivate_blocked_ip(entry.id)
        cycle = monitor.process_event(make_event(source_ip="203.0.113.5"))
        assert not cycle.stored.is_blocked
        assert cycle.alert is None


class TestFailures:
    def test_failed_event_insert_skips_alert_and_threat_counters(self, generator, rng):
        store = FlakyStore({"insert_event": {1}})
        mon = NetworkMonitor(store, generator, rng=rng)
        cycle = mon.process_event(make_event(port=4444, packet_size=300))
        assert not cycle.persisted
        assert cycle.alert is None
        assert store.recent_alerts(10) == []
        stats = mon.get_stats()
        assert stats.threats_detected == 0
        assert stats.total_traffic == 300

    def test_pipeline_continues_after_failure(self, generator, rng):
        store = FlakyStore({"insert_event": {3}})
        mon = NetworkMonitor(store, generator, rng=rng)
        results = mon.run_cycles(10)
        assert len(results) == 10
        assert [r.persisted for r in results].count(False) == 1
        assert not results[2].persisted
        assert len(store.recent_events(50)) == 9

    def test_failed_alert_insert_still_counts_threat(self, generator, rng):
        store = FlakyStore({"insert_alert": {1}})
        mon = NetworkMonitor(store, generator, rng=rng)
        cycle = mon.process_event(make_event(port=4444))
        assert cycle.persisted
        assert cycle.alert is None
        assert mon.get_stats().threats_detected == 1

    def test_blocklist_lookup_failure_fails_open(self, generator, rng):
        store = FlakyStore({"is_ip_blocked": {1}})
        store.add_blocked_ip(BlocklistEntry("203.0.113.5", "x"))
        mon = NetworkMonitor(store, generator, rng=rng)
        first = mon.process_event(make_event(source_ip="203.0.113.5"))
        second = mon.process_event(make_event(source_ip="203.0.113.5"))
        assert first.persisted and not first.stored.is_blocked
        assert second.stored.is_blocked

    def test_blocklist_lookup_failure_fail_closed(self, generator, rng):
        store = FlakyStore({"is_ip_blocked": {1}})
        mon = NetworkMonitor(store, generator, rng=rng, fail_closed=True)
        cycle = mon.process_event(make_event())
        assert cycle.stored.is_blocked
        assert cycle.alert.title == ThreatLabel.BLOCKED_IP.value

    def test_stats_flush_failure_is_dropped(self, generator, rng):
        store = FlakyStore({"insert_stats": {1}})
        mon = NetworkMonitor(store, generator, rng=rng)
        mon.run_cycles(3)
        assert mon.flush_stats() is None
        assert mon.flush_stats() is not None
        assert len(store.stats_history()) == 1
        assert mon.get_stats().total_traffic > 0


# ═══════════════════════════════════════════════════════════════════════════
#  Counter invariants over generated traffic
# ═══════════════════════════════════════════════════════════════════════════


class TestCounterInvariants:
    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_counters_match_processed_events(self, seed):
        gen = TrafficGenerator({"threat_probability": 0.5}, random.Random(seed))
        mon = NetworkMonitor(MemoryStore(), gen, rng=random.Random(seed))
        results = mon.run_cycles(200)
        stats = mon.get_stats()
        assert stats.total_traffic == sum(r.event.packet_size for r in results)
        assert stats.threats_detected == sum(1 for r in results if r.result.labels)
        assert stats.threats_blocked == sum(1 for r in results if r.result.should_block
                                            and r.result.labels)
        assert stats.threats_blocked <= stats.threats_detected

    def test_every_persisted_event_is_classified(self, monitor, memory_store):
        monitor.run_cycles(50)
        events = memory_store.recent_events(100)
        assert len(events) == 50
        assert all(e.is_classified for e in events)

    def test_flush_does_not_reset_counters(self, monitor, memory_store):
        monitor.run_cycles(5)
        before = monitor.get_stats()
        snap = monitor.flush_stats()
        assert snap.total_traffic == before.total_traffic
        monitor.run_cycles(5)
        assert monitor.get_stats().total_traffic > before.total_traffic
        second = monitor.flush_stats()
        history = memory_store.stats_history()
        assert second.total_traffic >= snap.total_traffic
        assert {s.id for s in history} == {snap.id, second.id}


# ═══════════════════════════════════════════════════════════════════════════
#  Query surface
# ═══════════════════════════════════════════════════════════════════════════


class TestQueries:
    def test_recent_events_and_alerts(self, monitor):
        monitor.process_event(make_event(port=4444, timestamp="2026-02-26T10:00:01.000000Z"))
        monitor.process_event(make_event(timestamp="2026-02-26T10:00:02.000000Z"))
        monitor.process_event(make_event(port=6667, timestamp="2026-02-26T10:00:03.000000Z"))
        events = monitor.get_recent_events(2)
        assert [e.port for e in events] == [6667, 5432]
        alerts = monitor.get_recent_alerts()
        assert len(alerts) == 2
        assert monitor.get_recent_alerts(status=AlertStatus.ACKNOWLEDGED) == []
        assert len(monitor.get_recent_alerts(severity=ThreatLevel.MEDIUM)) == 2

    def test_queries_swallow_store_errors(self, monitor, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreError("down")

        monkeypatch.setattr(monitor.store, "recent_events", broken)
        monkeypatch.setattr(monitor.store, "recent_alerts", broken)
        assert monitor.get_recent_events() == []
        assert monitor.get_recent_alerts() == []

    def test_returned_alerts_cannot_change_stored_ones(self, monitor, memory_store):
        monitor.process_event(make_event(port=4444))
        alert = monitor.get_recent_alerts()[0]
        alert.severity = ThreatLevel.LOW
        alert.status = AlertStatus.ACKNOWLEDGED
        stored = memory_store.recent_alerts(1)[0]
        assert stored.severity is ThreatLevel.MEDIUM
        assert stored.status is AlertStatus.NEW


# ═══════════════════════════════════════════════════════════════════════════
#  Threaded control loop
# ═══════════════════════════════════════════════════════════════════════════


class TestControlLoop:
    def test_start_processes_and_flushes(self, monitor, memory_store):
        monitor.start()
        try:
            assert monitor.is_running
            assert wait_until(lambda: len(memory_store.recent_events(10)) >= 5)
            assert wait_until(lambda: len(memory_store.stats_history()) >= 1)
        finally:
            monitor.stop(timeout=2.0)
        assert not monitor.is_running

    def test_start_is_idempotent(self, monitor):
        monitor.start()
        try:
            worker = monitor._worker
            monitor.start()
            assert monitor._worker is worker
        finally:
            monitor.stop(timeout=2.0)

    def test_stop_halts_new_events(self, monitor, memory_store):
        monitor.start()
        assert wait_until(lambda: len(memory_store.recent_events(5)) >= 2)
        monitor.stop(timeout=2.0)
        count = len(memory_store.recent_events(10_000))
        time.sleep(0.1)
        assert len(memory_store.recent_events(10_000)) == count

    def test_loop_survives_failures(self, generator, rng):
        store = FlakyStore({"insert_event": {1, 2, 3}, "insert_stats": {1}})
        mon = NetworkMonitor(store, generator, stats_interval_sec=0.05, rng=rng)
        mon.start()
        try:
            assert wait_until(lambda: len(store.recent_events(10)) >= 3)
            assert wait_until(lambda: len(store.stats_history()) >= 1)
        finally:
            mon.stop(timeout=2.0)

    def test_restart_after_stop(self, monitor, memory_store):
        monitor.start()
        assert wait_until(lambda: len(memory_store.recent_events(5)) >= 1)
        monitor.stop(timeout=2.0)
        seen = len(memory_store.recent_events(10_000))
        monitor.start()
        try:
            assert wait_until(lambda: len(memory_store.recent_events(10_000)) > seen)
        finally:
            monitor.stop(timeout=2.0)

    def test_restart_waits_for_in_flight_cycle(self, generator, rng):
        store = SlowStore(delay=0.3)
        mon = NetworkMonitor(store, generator, stats_interval_sec=0.05, rng=rng)
        mon.start()
        assert wait_until(lambda: store.in_flight == 1)
        mon.stop(timeout=0.01)
        mon.start()
        try:
            assert mon.is_running
            assert wait_until(lambda: len(store.recent_events(10)) >= 3, timeout=5.0)
        finally:
            mon.stop(timeout=2.0)
        assert store.max_in_flight == 1

    def test_run_cycles_refused_while_running(self, monitor):
        monitor.start()
        try:
            with pytest.raises(RuntimeError):
                monitor.run_cycles(1)
        finally:
            monitor.stop(timeout=2.0)


class TestConstruction:
    def test_from_config(self, memory_store, generator):
        cfg = {
            "monitor": {"stats_interval_sec": 2, "active_connections": [10, 20]},
            "classifier": {"fail_closed_on_lookup_error": True},
        }
        mon = NetworkMonitor.from_config(memory_store, generator, cfg)
        assert mon.stats_interval_sec == 2.0
        assert mon.active_connections == (10, 20)
        assert mon.fail_closed is True

    def test_from_empty_config_uses_defaults(self, memory_store, generator):
        mon = NetworkMonitor.from_config(memory_store, generator, {})
        assert mon.stats_interval_sec == 10.0
        assert mon.active_connections == (100, 600)
        assert mon.fail_closed is False

    @pytest.mark.parametrize(
        "kwargs",
        [{"stats_interval_sec": 0}, {"active_connections": (600, 100)}],
    )
    def test_invalid_arguments(self, memory_store, generator, kwargs):
        with pytest.raises(ValueError):
            NetworkMonitor(memory_store, generator, **kwargs)
