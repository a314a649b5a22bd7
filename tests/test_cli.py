"""Tests for the monitor CLI and the shared config helpers."""

from __future__ import annotations

import pytest
import yaml

from src.contracts.stats import StatsSnapshot
from src.monitor.cli import format_stats, main, open_store
from src.shared.config_loader import load_config, load_yaml, section
from src.shared.seed import init_seed
from src.storage import MemoryStore, SQLiteStore


@pytest.fixture
def config_file(tmp_path):
    """Config with fast delays and a database under tmp_path."""
    cfg = {
        "generator": {"delay_sec": [0.0, 0.01], "threat_probability": 0.5},
        "monitor": {"stats_interval_sec": 0.05},
        "storage": {"db_path": str(tmp_path / "cfg.db")},
    }
    path = tmp_path / "monitor.yaml"
    path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    return path


class TestConfig:
    def test_load_yaml(self, config_file):
        cfg = load_yaml(config_file)
        assert cfg["generator"]["delay_sec"] == [0.0, 0.01]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml(path) == {}

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_default_is_empty(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config() == {}

    def test_section(self):
        assert section({"a": {"x": 1}}, "a") == {"x": 1}
        assert section({"a": None}, "a") == {}
        assert section({}, "missing") == {}

    def test_shipped_config_parses(self):
        cfg = load_yaml("config/monitor.yaml")
        assert set(cfg) == {"generator", "monitor", "classifier", "storage"}


def test_init_seed_is_reproducible():
    a, b = init_seed(42), init_seed(42)
    assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]


class TestMonitorCli:
    def test_open_store(self, tmp_path):
        assert isinstance(open_store({}), MemoryStore)
        store = open_store({"storage": {"db_path": str(tmp_path / "a.db")}})
        assert isinstance(store, SQLiteStore)
        store.close()

    def test_db_flag_overrides_config(self, tmp_path):
        store = open_store({"storage": {"db_path": None}}, str(tmp_path / "flag.db"))
        assert isinstance(store, SQLiteStore)
        store.close()

    def test_format_stats(self):
        text = format_stats(StatsSnapshot(total_traffic=3 * 1024 * 1024, threats_detected=4,
                                          threats_blocked=1, active_connections=250))
        assert text == (
            "traffic: 3.00 MB | active connections: 250 | "
            "threats detected: 4 | threats blocked: 1"
        )

    def test_batch_mode_persists(self, tmp_path, config_file, capsys):
        db = str(tmp_path / "batch.db")
        main(["--config", str(config_file), "--db", db, "--events", "40", "--seed", "7",
              "--log-level", "WARNING"])
        out = capsys.readouterr().out
        assert "Batch complete: 40 events" in out

        store = SQLiteStore(db)
        try:
            assert len(store.recent_events(100)) == 40
            history = store.stats_history()
            assert len(history) == 1
            assert history[0].total_traffic > 0
        finally:
            store.close()

    def test_batch_mode_is_seeded(self, tmp_path, config_file):
        dbs = [str(tmp_path / f"run{i}.db") for i in range(2)]
        for db in dbs:
            main(["--config", str(config_file), "--db", db, "--events", "15", "--seed", "3",
                  "--log-level", "ERROR"])
        rows = []
        for db in dbs:
            store = SQLiteStore(db)
            rows.append([(e.source_ip, e.port, e.packet_size, e.threat_level)
                         for e in store.recent_events(100)])
            store.close()
        assert rows[0] == rows[1]

    def test_live_mode_with_duration(self, tmp_path, config_file, capsys):
        main(["--config", str(config_file), "--duration-sec", "0.3", "--log-level", "ERROR"])
        out = capsys.readouterr().out
        assert "Network monitor running" in out
        assert "threats detected" in out

        store = SQLiteStore(str(tmp_path / "cfg.db"))
        try:
            assert len(store.recent_events(1000)) >= 1
            assert len(store.stats_history(100)) >= 1
        finally:
            store.close()
