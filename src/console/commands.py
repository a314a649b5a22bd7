"""Operator commands: block, unblock, acknowledge.

These mutate the store directly and may run while the monitor loop is
writing; the store serialises access.  A failure never raises to the
caller, it comes back as a ``Notification`` to show the operator.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

from src.contracts.blocklist import BlocklistEntry
from src.storage.base import Store, StoreError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    ok: bool
    message: str

    def __str__(self) -> str:
        return self.message if self.ok else f"Error: {self.message}"


class OperatorConsole:
    def __init__(self, store: Store) -> None:
        self.store = store

    def block_ip(self, ip_address: str, reason: str) -> Notification:
        ip_address = ip_address.strip()
        reason = reason.strip()
        if not ip_address or not reason:
            return Notification(False, "Please enter both IP address and reason")
        try:
            ipaddress.IPv4Address(ip_address)
        except ValueError:
            return Notification(False, f"Not a valid IPv4 address: {ip_address}")
        try:
            entry = self.store.add_blocked_ip(BlocklistEntry(ip_address=ip_address, reason=reason))
        except StoreError as exc:
            log.warning("Block %s failed: %s", ip_address, exc)
            return Notification(False, f"Error blocking IP: {exc}")
        return Notification(True, f"IP {entry.ip_address} has been blocked (entry {entry.id})")

    def unblock_ip(self, entry_id: int) -> Notification:
        try:
            entry = self.store.deactivate_blocked_ip(entry_id)
        except StoreError as exc:
            log.warning("Unblock entry %s failed: %s", entry_id, exc)
            return Notification(False, f"Error unblocking IP: {exc}")
        return Notification(True, f"IP {entry.ip_address} has been unblocked")

    def acknowledge_alert(self, alert_id: int) -> Notification:
        try:
            alert = self.store.acknowledge_alert(alert_id)
        except StoreError as exc:
            log.warning("Acknowledge alert %s failed: %s", alert_id, exc)
            return Notification(False, f"Error acknowledging alert: {exc}")
        return Notification(True, f"Alert {alert.id} acknowledged at {alert.acknowledged_at}")
