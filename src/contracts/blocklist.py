"""Blocklist entry — an address-level override forcing maximum severity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.contracts.event import utc_now_iso

BLOCKLIST_COLUMNS: list[str] = ["id", "ip_address", "reason", "is_active", "blocked_at"]


@dataclass(slots=True)
class BlocklistEntry:
    ip_address: str
    reason: str
    is_active: bool = True
    blocked_at: str = field(default_factory=utc_now_iso)
    id: int | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ip_address": self.ip_address,
            "reason": self.reason,
            "is_active": self.is_active,
            "blocked_at": self.blocked_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> BlocklistEntry:
        return cls(
            id=row.get("id"),
            ip_address=row["ip_address"],
            reason=row.get("reason") or "",
            is_active=bool(row.get("is_active", True)),
            blocked_at=row.get("blocked_at") or utc_now_iso(),
        )
