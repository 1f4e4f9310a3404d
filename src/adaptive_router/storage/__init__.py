"""Storage: SQLite profile, decision and suggestion stores plus the async ledger."""

from adaptive_router.storage.database import DEFAULT_DATA_DIR, Database
from adaptive_router.storage.decisions import DecisionLog
from adaptive_router.storage.ledger import PerformanceLedger
from adaptive_router.storage.learning import DriftStore, SuggestionStore
from adaptive_router.storage.profiles import ProfileStore

__all__ = [
    "DEFAULT_DATA_DIR",
    "Database",
    "DecisionLog",
    "DriftStore",
    "PerformanceLedger",
    "ProfileStore",
    "SuggestionStore",
]
