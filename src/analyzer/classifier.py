"""Threat classifier — fixed heuristic scorer: NetworkEvent → ClassificationResult.

Scoring (additive, all rules evaluated)
───────────────────────────────────────
  +40  destination port in the known-malicious set (IRC botnet ports)
  +30  destination port in the suspicious set
  +20  payload larger than 10 000 bytes
  +25  ICMP with payload larger than 1 000 bytes
  +15  private destination reached from a non-private source

Levels: score >= 70 critical, >= 50 high, >= 30 medium, otherwise low.

Labels are detected independently of the score.  An active blocklist entry
for the source address overrides everything: level critical, the
``BLOCKED_IP`` label placed first and a block decision.  The lookup runs
last and is never cached, so blocklist changes apply to the next event.
"""

from __future__ import annotations

import logging
from typing import Callable

from src.analyzer.descriptions import describe_event
from src.contracts.classification import ClassificationResult
from src.contracts.enums import Protocol, ThreatLabel, ThreatLevel
from src.contracts.event import NetworkEvent

log = logging.getLogger(__name__)

BlocklistLookup = Callable[[str], bool]

# ── port sets ───────────────────────────────────────────────────────────────

PORT_SCAN_PORTS = frozenset({22, 23, 80, 443, 3389, 8080})
SUSPICIOUS_PORTS = frozenset({1337, 31337, 4444, 5555})
MALICIOUS_PORTS = frozenset({6667, 6668, 6669})

# ── score weights ───────────────────────────────────────────────────────────

MALICIOUS_PORT_POINTS = 40
SUSPICIOUS_PORT_POINTS = 30
LARGE_PAYLOAD_POINTS = 20
ICMP_FLOOD_POINTS = 25
INBOUND_PRIVATE_POINTS = 15

LARGE_PAYLOAD_BYTES = 10_000
ICMP_PAYLOAD_BYTES = 1_000
UNUSUAL_PAYLOAD_BYTES = 50_000
WELL_KNOWN_PORT_LIMIT = 1024

# (minimum score, level), highest first
LEVEL_THRESHOLDS: tuple[tuple[int, ThreatLevel], ...] = (
    (70, ThreatLevel.CRITICAL),
    (50, ThreatLevel.HIGH),
    (30, ThreatLevel.MEDIUM),
)


def is_private_ip(ip: str) -> bool:
    """True for 10.0.0.0/8, 172.16.0.0/12 and 192.168.0.0/16 addresses.

    The address must be a dotted quad; callers own that contract.
    """
    parts = [int(p) for p in ip.split(".")]
    return (
        parts[0] == 10
        or (parts[0] == 172 and 16 <= parts[1] <= 31)
        or (parts[0] == 192 and parts[1] == 168)
    )


def score_event(event: NetworkEvent) -> int:
    score = 0
    if event.port in MALICIOUS_PORTS:
        score += MALICIOUS_PORT_POINTS
    if event.port in SUSPICIOUS_PORTS:
        score += SUSPICIOUS_PORT_POINTS
    if event.packet_size > LARGE_PAYLOAD_BYTES:
        score += LARGE_PAYLOAD_POINTS
    if event.protocol is Protocol.ICMP and event.packet_size > ICMP_PAYLOAD_BYTES:
        score += ICMP_FLOOD_POINTS
    if is_private_ip(event.destination_ip) and not is_private_ip(event.source_ip):
        score += INBOUND_PRIVATE_POINTS
    return score


def level_for_score(score: int) -> ThreatLevel:
    for minimum, level in LEVEL_THRESHOLDS:
        if score >= minimum:
            return level
    return ThreatLevel.LOW


def is_port_scan(event: NetworkEvent) -> bool:
    return event.protocol is Protocol.TCP and event.port in PORT_SCAN_PORTS


def is_suspicious_port(port: int) -> bool:
    return port in SUSPICIOUS_PORTS or port in MALICIOUS_PORTS


def is_unusual_traffic(event: NetworkEvent) -> bool:
    return event.packet_size > UNUSUAL_PAYLOAD_BYTES or (
        event.protocol is Protocol.UDP and event.port < WELL_KNOWN_PORT_LIMIT
    )


def detect_labels(event: NetworkEvent) -> list[ThreatLabel]:
    """Evaluate every label rule; order is fixed (scan, port, traffic)."""
    labels: list[ThreatLabel] = []
    if is_port_scan(event):
        labels.append(ThreatLabel.PORT_SCAN)
    if is_suspicious_port(event.port):
        labels.append(ThreatLabel.SUSPICIOUS_PORT)
    if is_unusual_traffic(event):
        labels.append(ThreatLabel.UNUSUAL_TRAFFIC)
    return labels


def _lookup_blocked(ip: str, lookup: BlocklistLookup, fail_closed: bool) -> bool:
    try:
        return bool(lookup(ip))
    except Exception as exc:
        log.warning(
            "Blocklist lookup failed for %s (%s); treating as %s",
            ip,
            exc,
            "blocked" if fail_closed else "not blocked",
        )
        return fail_closed


# ═══════════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════════


def classify(
    event: NetworkEvent,
    blocklist_lookup: BlocklistLookup,
    *,
    fail_closed: bool = False,
) -> ClassificationResult:
    """Score and label *event*, then apply the blocklist override.

    Parameters
    ──────────
    event
        The event to classify; it is not modified.
    blocklist_lookup
        ``ip -> bool``; True when an active blocklist entry exists.
        Queried exactly once per call.
    fail_closed
        How to treat a failing lookup.  False (default) treats the
        address as not blocked, True as blocked.
    """
    score = score_event(event)
    level = level_for_score(score)
    labels = detect_labels(event)

    if _lookup_blocked(event.source_ip, blocklist_lookup, fail_closed):
        return ClassificationResult(
            threat_level=ThreatLevel.CRITICAL,
            labels=(ThreatLabel.BLOCKED_IP, *labels),
            should_block=True,
            score=score,
        )

    return ClassificationResult(
        threat_level=level,
        labels=tuple(labels),
        should_block=level is ThreatLevel.CRITICAL,
        score=score,
    )


def apply_classification(event: NetworkEvent, result: ClassificationResult) -> NetworkEvent:
    """Attach level, labels, block flag and description to *event* in place."""
    event.threat_level = result.threat_level
    event.threat_labels = list(result.labels)
    event.is_blocked = result.should_block
    event.description = describe_event(event, result.labels)
    return event
