"""Network event data-class — one observed connection attempt."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.contracts.enums import Protocol, ThreatLabel, ThreatLevel

# Column order of the network_events collection
EVENT_COLUMNS: list[str] = [
    "id",
    "source_ip",
    "destination_ip",
    "protocol",
    "port",
    "packet_size",
    "timestamp",
    "threat_level",
    "threat_type",
    "is_blocked",
    "description",
]

LABEL_SEPARATOR = ", "


def utc_now_iso() -> str:
    """Current wall-clock time as ISO-8601 UTC with a ``Z`` suffix."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def join_labels(labels: list[ThreatLabel] | tuple[ThreatLabel, ...]) -> str | None:
    """Comma-join labels into the persisted ``threat_type`` value."""
    if not labels:
        return None
    return LABEL_SEPARATOR.join(lbl.value for lbl in labels)


def split_labels(threat_type: str | None) -> list[ThreatLabel]:
    """Inverse of :func:`join_labels`; unknown names are dropped."""
    if not threat_type:
        return []
    known = {lbl.value: lbl for lbl in ThreatLabel}
    return [known[p.strip()] for p in threat_type.split(",") if p.strip() in known]


@dataclass(slots=True)
class NetworkEvent:
    """One connection observation flowing through the monitor pipeline."""

    # ── observed ──
    source_ip: str
    destination_ip: str
    protocol: Protocol
    port: int               # 0..65535
    packet_size: int        # bytes, > 0
    timestamp: str = field(default_factory=utc_now_iso)

    # ── classification (assigned together by the classifier) ──
    threat_level: ThreatLevel | None = None
    threat_labels: list[ThreatLabel] = field(default_factory=list)
    is_blocked: bool = False
    description: str = ""

    # ── assigned on persistence ──
    id: int | None = None

    @property
    def is_classified(self) -> bool:
        return self.threat_level is not None and bool(self.description)

    @property
    def threat_type(self) -> str | None:
        return join_labels(self.threat_labels)

    # ── serialisation ─────────────────────────────────────────────────────

    def to_row(self) -> dict[str, Any]:
        """Return a flat dict keyed by :data:`EVENT_COLUMNS`."""
        return {
            "id": self.id,
            "source_ip": self.source_ip,
            "destination_ip": self.destination_ip,
            "protocol": self.protocol.value,
            "port": self.port,
            "packet_size": self.packet_size,
            "timestamp": self.timestamp,
            "threat_level": self.threat_level.value if self.threat_level else None,
            "threat_type": self.threat_type,
            "is_blocked": self.is_blocked,
            "description": self.description,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> NetworkEvent:
        level = row.get("threat_level")
        return cls(
            id=row.get("id"),
            source_ip=row["source_ip"],
            destination_ip=row["destination_ip"],
            protocol=Protocol(row["protocol"]),
            port=int(row["port"]),
            packet_size=int(row["packet_size"]),
            timestamp=row.get("timestamp") or utc_now_iso(),
            threat_level=ThreatLevel(level) if level else None,
            threat_labels=split_labels(row.get("threat_type")),
            is_blocked=bool(row.get("is_blocked", False)),
            description=row.get("description") or "",
        )

    def to_json(self) -> str:
        """Return compact JSON string."""
        return json.dumps(self.to_row(), ensure_ascii=False, separators=(",", ":"))
