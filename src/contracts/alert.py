"""Alert model — raised for every event whose classification carries a label."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from src.contracts.enums import AlertStatus, ThreatLevel
from src.contracts.event import utc_now_iso

ALERT_COLUMNS: list[str] = [
    "id",
    "event_id",
    "severity",
    "title",
    "message",
    "status",
    "created_at",
    "acknowledged_at",
]

DEFAULT_ALERT_TITLE = "Security Alert"


class AlertStateError(ValueError):
    """Raised on an illegal alert status transition."""


@dataclass(slots=True)
class Alert:
    """Operator-facing alert. Severity is fixed at creation."""

    event_id: int
    severity: ThreatLevel
    title: str
    message: str
    status: AlertStatus = AlertStatus.NEW
    created_at: str = field(default_factory=utc_now_iso)
    acknowledged_at: str | None = None
    id: int | None = None

    def acknowledged(self, at: str | None = None) -> Alert:
        """Return the acknowledged copy of this alert (new → acknowledged only)."""
        if self.status is not AlertStatus.NEW:
            raise AlertStateError(f"Alert {self.id} is already {self.status.value}")
        return replace(
            self,
            status=AlertStatus.ACKNOWLEDGED,
            acknowledged_at=at or utc_now_iso(),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "status": self.status.value,
            "created_at": self.created_at,
            "acknowledged_at": self.acknowledged_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Alert:
        return cls(
            id=row.get("id"),
            event_id=int(row["event_id"]),
            severity=ThreatLevel(row["severity"]),
            title=row["title"],
            message=row["message"],
            status=AlertStatus(row.get("status") or AlertStatus.NEW.value),
            created_at=row.get("created_at") or utc_now_iso(),
            acknowledged_at=row.get("acknowledged_at"),
        )
