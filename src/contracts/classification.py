"""Classification result — the classifier's output for one event."""

from __future__ import annotations

from dataclasses import dataclass

from src.contracts.enums import ThreatLabel, ThreatLevel
from src.contracts.event import join_labels


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    threat_level: ThreatLevel
    labels: tuple[ThreatLabel, ...] = ()
    should_block: bool = False
    score: int = 0

    @property
    def threat_type(self) -> str | None:
        """Comma-joined labels, or None when nothing was detected."""
        return join_labels(self.labels)

    @property
    def has_threats(self) -> bool:
        return bool(self.labels)
