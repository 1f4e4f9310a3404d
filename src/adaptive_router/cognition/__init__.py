"""Cognitive state estimation."""

from adaptive_router.cognition.estimator import (
    DEFAULT_ESTIMATOR_TUNING,
    ActivityContext,
    AlignmentAssessment,
    CapacityAssessment,
    CognitiveState,
    CognitiveStateEstimator,
    DecisionPreferences,
    EstimatorTuning,
    Recommendation,
    estimate_cognitive_state,
)

__all__ = [
    "DEFAULT_ESTIMATOR_TUNING",
    "ActivityContext",
    "AlignmentAssessment",
    "CapacityAssessment",
    "CognitiveState",
    "CognitiveStateEstimator",
    "DecisionPreferences",
    "EstimatorTuning",
    "Recommendation",
    "estimate_cognitive_state",
]
