"""Learning loop: drift detection and profile-update suggestions."""

from adaptive_router.learning.drift import (
    DEFAULT_DRIFT_TUNING,
    DriftTuning,
    PreferenceDriftDetector,
)
from adaptive_router.learning.records import (
    DriftRecord,
    Suggestion,
    SuggestionResult,
    SuggestionStats,
    SuggestionStatus,
)
from adaptive_router.learning.suggestions import (
    DEFAULT_SUGGESTION_TUNING,
    SuggestionEngine,
    SuggestionTuning,
)

__all__ = [
    "DEFAULT_DRIFT_TUNING",
    "DEFAULT_SUGGESTION_TUNING",
    "DriftRecord",
    "DriftTuning",
    "PreferenceDriftDetector",
    "Suggestion",
    "SuggestionEngine",
    "SuggestionResult",
    "SuggestionStats",
    "SuggestionStatus",
    "SuggestionTuning",
]
