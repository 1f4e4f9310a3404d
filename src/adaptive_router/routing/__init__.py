"""Decision fusion: override stages, fallback chain and decision records."""

from adaptive_router.routing.decision import RoutingDecision, excerpt, new_decision_id
from adaptive_router.routing.fallback import FallbackChainGenerator
from adaptive_router.routing.pipeline import DecisionPipeline, FusionResult
from adaptive_router.routing.stages import (
    DEFAULT_STAGES,
    Stage,
    baseline,
    cognitive_override,
    performance_override,
    preference_override,
    privacy_override,
    time_aware_override,
)
from adaptive_router.routing.state import (
    DEFAULT_PIPELINE_TUNING,
    DecisionInputs,
    DecisionState,
    PipelineTuning,
    TrailEntry,
)

__all__ = [
    "DEFAULT_PIPELINE_TUNING",
    "DEFAULT_STAGES",
    "DecisionInputs",
    "DecisionPipeline",
    "DecisionState",
    "FallbackChainGenerator",
    "FusionResult",
    "PipelineTuning",
    "RoutingDecision",
    "Stage",
    "TrailEntry",
    "baseline",
    "cognitive_override",
    "excerpt",
    "new_decision_id",
    "performance_override",
    "preference_override",
    "privacy_override",
    "time_aware_override",
]
