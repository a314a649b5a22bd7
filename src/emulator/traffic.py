"""Synthetic network traffic generator.

Produces an endless stream of unclassified ``NetworkEvent`` objects with
realistically skewed attributes.  About 15 % of events are "threat
intended": their port leans towards the suspicious set and their payload
is drawn from a ten times wider range.  Identifiers are assigned later by
the store, never here.
"""

from __future__ import annotations

import logging
import random as _random_mod
from collections.abc import Iterator
from typing import Any, Callable

from src.contracts.enums import Protocol
from src.contracts.event import NetworkEvent, utc_now_iso

log = logging.getLogger(__name__)

PROTOCOLS: list[Protocol] = list(Protocol)
COMMON_PORTS: list[int] = [80, 443, 22, 21, 25, 3306, 5432, 8080]
THREAT_PORTS: list[int] = [1337, 4444, 5555, 31337]

_DEFAULTS: dict[str, Any] = {
    "threat_probability": 0.15,
    "threat_port_probability": 0.5,
    "normal_max_bytes": 10_000,
    "threat_max_bytes": 100_000,
    "min_packet_bytes": 64,
    "delay_sec": [1.0, 4.0],
    "common_ports": COMMON_PORTS,
    "threat_ports": THREAT_PORTS,
}


# ---------------------------------------------------------------------------
# Address families
# ---------------------------------------------------------------------------

def _octet(rng: _random_mod.Random) -> int:
    return rng.randrange(255)


def _private_192(rng: _random_mod.Random) -> str:
    return f"192.168.{_octet(rng)}.{_octet(rng)}"


def _private_10(rng: _random_mod.Random) -> str:
    return f"10.0.{_octet(rng)}.{_octet(rng)}"


def _public(rng: _random_mod.Random) -> str:
    return f"{rng.randint(1, 223)}.{_octet(rng)}.{_octet(rng)}.{_octet(rng)}"


ADDRESS_FAMILIES: list[Callable[[_random_mod.Random], str]] = [
    _private_192,
    _private_10,
    _public,
]


def random_ip(rng: _random_mod.Random) -> str:
    """Pick one address family uniformly and draw an address from it."""
    return rng.choice(ADDRESS_FAMILIES)(rng)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class TrafficGenerator:
    """Irregularly paced connection events, configured by the ``generator`` section."""

    def __init__(self, cfg: dict[str, Any] | None = None,
                 rng: _random_mod.Random | None = None) -> None:
        cfg = {**_DEFAULTS, **(cfg or {})}
        self.rng = rng or _random_mod.Random()
        self.threat_probability = float(cfg["threat_probability"])
        self.threat_port_probability = float(cfg["threat_port_probability"])
        self.normal_max_bytes = int(cfg["normal_max_bytes"])
        self.threat_max_bytes = int(cfg["threat_max_bytes"])
        self.min_packet_bytes = int(cfg["min_packet_bytes"])
        self.common_ports = [int(p) for p in cfg["common_ports"]]
        self.threat_ports = [int(p) for p in cfg["threat_ports"]]
        lo, hi = cfg["delay_sec"]
        if lo < 0 or hi < lo:
            raise ValueError(f"Invalid delay_sec range: {cfg['delay_sec']}")
        self.delay_range = (float(lo), float(hi))
        self.generated = 0

        log.debug(
            "Traffic generator: threat_p=%.2f, delay=%.1f-%.1fs",
            self.threat_probability, *self.delay_range,
        )

    def next_event(self) -> NetworkEvent:
        rng = self.rng
        is_threat = rng.random() < self.threat_probability
        if is_threat and rng.random() < self.threat_port_probability:
            port = rng.choice(self.threat_ports)
        else:
            port = rng.choice(self.common_ports)
        ceiling = self.threat_max_bytes if is_threat else self.normal_max_bytes

        self.generated += 1
        return NetworkEvent(
            source_ip=random_ip(rng),
            destination_ip=random_ip(rng),
            protocol=rng.choice(PROTOCOLS),
            port=port,
            packet_size=rng.randrange(ceiling) + self.min_packet_bytes,
            timestamp=utc_now_iso(),
        )

    def stream(self) -> Iterator[NetworkEvent]:
        """Infinite lazy event sequence; a fresh iterator continues the same RNG."""
        while True:
            yield self.next_event()

    def next_delay(self) -> float:
        """Seconds to wait before the next event."""
        return self.rng.uniform(*self.delay_range)
