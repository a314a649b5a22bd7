"""Statistics snapshot — immutable record of the running traffic counters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.contracts.event import utc_now_iso

STATS_COLUMNS: list[str] = [
    "id",
    "total_traffic",
    "active_connections",
    "threats_detected",
    "threats_blocked",
    "recorded_at",
]


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    total_traffic: int = 0          # bytes
    active_connections: int = 0     # resampled every event
    threats_detected: int = 0
    threats_blocked: int = 0
    recorded_at: str = field(default_factory=utc_now_iso)
    id: int | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "total_traffic": self.total_traffic,
            "active_connections": self.active_connections,
            "threats_detected": self.threats_detected,
            "threats_blocked": self.threats_blocked,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> StatsSnapshot:
        return cls(
            id=row.get("id"),
            total_traffic=int(row.get("total_traffic", 0)),
            active_connections=int(row.get("active_connections", 0)),
            threats_detected=int(row.get("threats_detected", 0)),
            threats_blocked=int(row.get("threats_blocked", 0)),
            recorded_at=row.get("recorded_at") or utc_now_iso(),
        )
