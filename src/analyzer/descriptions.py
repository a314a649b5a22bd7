"""Human-readable descriptions for classified events."""

from __future__ import annotations

from typing import Callable

from src.contracts.enums import ThreatLabel
from src.contracts.event import NetworkEvent

_TEMPLATES: dict[str, Callable[[NetworkEvent], str]] = {
    ThreatLabel.PORT_SCAN.value: lambda e: (
        f"Possible port scanning activity detected from {e.source_ip} "
        f"targeting port {e.port}"
    ),
    ThreatLabel.SUSPICIOUS_PORT.value: lambda e: (
        f"Connection attempt on suspicious port {e.port} from {e.source_ip}"
    ),
    ThreatLabel.UNUSUAL_TRAFFIC.value: lambda e: (
        f"Unusual traffic pattern detected: {e.packet_size} bytes via {e.protocol.value}"
    ),
    ThreatLabel.BLOCKED_IP.value: lambda e: (
        f"Previously blocked IP {e.source_ip} attempting to reconnect"
    ),
}


def describe(label: ThreatLabel | str, event: NetworkEvent) -> str:
    """Render the sentence for one label; unknown labels get a generic message."""
    key = label.value if isinstance(label, ThreatLabel) else str(label).strip()
    template = _TEMPLATES.get(key)
    if template is None:
        return f"Security event detected from {event.source_ip}"
    return template(event)


def describe_event(event: NetworkEvent, labels: list[ThreatLabel] | tuple[ThreatLabel, ...]) -> str:
    """Description of an event: first label wins, no labels means normal traffic."""
    if not labels:
        return f"Normal {event.protocol.value} traffic from {event.source_ip}"
    return describe(labels[0], event)
