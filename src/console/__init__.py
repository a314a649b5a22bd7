"""Operator console — blocklist/alert commands and tabular views over the store."""

from src.console.commands import Notification, OperatorConsole

__all__ = ["Notification", "OperatorConsole"]
