"""Network event contract — data structures shared by all modules."""

from src.contracts.alert import Alert, AlertStateError
from src.contracts.blocklist import BlocklistEntry
from src.contracts.classification import ClassificationResult
from src.contracts.enums import AlertStatus, Protocol, ThreatLabel, ThreatLevel
from src.contracts.event import NetworkEvent
from src.contracts.stats import StatsSnapshot

__all__ = [
    "Alert",
    "AlertStateError",
    "AlertStatus",
    "BlocklistEntry",
    "ClassificationResult",
    "NetworkEvent",
    "Protocol",
    "StatsSnapshot",
    "ThreatLabel",
    "ThreatLevel",
]
