"""Immutable state threaded through the decision-fusion stages."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Final

from adaptive_router.classification import ClassificationResult
from adaptive_router.cognition import CognitiveState
from adaptive_router.models import PerformanceSummary, UserProfile, clamp
from adaptive_router.registry import WorkerRegistry

# ═══════════════════════════════════════════════════════════════════════════
# TUNING
# ═══════════════════════════════════════════════════════════════════════════

DEFAULT_CATEGORY_WORKERS: Final[dict[str, str]] = {
    "debug": "claude-3.5-sonnet",
    "code": "claude-3.5-sonnet",
    "analyze": "claude-3.5-sonnet",
    "write": "gpt-4",
    "creative": "gpt-4",
    "explain": "gpt-4",
    "summarize": "smollm3",
    "research": "perplexity",
    "route": "smollm3",
    "sensitive": "smollm3",
    "quick_query": "smollm3",
}


@dataclass(frozen=True)
class PipelineTuning:
    """Switches, thresholds and confidence deltas for the override stages."""

    time_aware_routing: bool = True
    local_first_routing: bool = True
    local_only_hours: tuple[int, ...] = (22, 23, 0, 1, 2, 3, 4, 5)
    category_workers: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_WORKERS)
    )
    default_worker: str = "smollm3"
    baseline_confidence: float = 0.5
    unknown_confidence: float = 0.3
    peak_time_delta: float = 0.2
    time_delta: float = 0.1
    alignment_threshold: float = 0.4
    low_alignment_delta: float = 0.1
    focus_window_delta: float = 0.15
    low_capacity_delta: float = 0.05
    performance_min_samples: int = 5
    performance_margin: float = 0.1
    performance_floor: float = 0.6
    performance_max_delta: float = 0.2
    missing_data_penalty: float = 0.05
    preference_delta: float = 0.05
    # Workers allowed through the preference stage under high uncertainty,
    # in addition to registry entries flagged uncertainty_safe
    uncertainty_safe_workers: tuple[str, ...] = ()
    privacy_confidence_floor: float = 0.8
    max_fallbacks: int = 5

    def __post_init__(self) -> None:
        for name in (
            "baseline_confidence",
            "unknown_confidence",
            "alignment_threshold",
            "performance_margin",
            "performance_floor",
            "privacy_confidence_floor",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
        if self.performance_min_samples < 1:
            raise ValueError(
                f"performance_min_samples must be >= 1, got {self.performance_min_samples}"
            )
        if self.max_fallbacks < 1:
            raise ValueError(f"max_fallbacks must be >= 1, got {self.max_fallbacks}")


DEFAULT_PIPELINE_TUNING: Final = PipelineTuning()


# ═══════════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DecisionInputs:
    """Everything a stage may read. Never mutated."""

    classification: ClassificationResult
    cognitive: CognitiveState
    profile: UserProfile
    timestamp: datetime
    performance: PerformanceSummary | None
    registry: WorkerRegistry
    tuning: PipelineTuning = DEFAULT_PIPELINE_TUNING

    @property
    def category(self) -> str:
        return self.classification.primary_category

    @property
    def hour(self) -> int:
        return self.timestamp.hour


@dataclass(frozen=True)
class TrailEntry:
    """One line of the decision's reason trail.

    ``action`` is ``baseline``, ``override``, ``adjust``, ``recovery``,
    ``suppressed`` or ``enforce``.
    """

    stage: str
    action: str
    reason: str
    worker_before: str | None = None
    worker_after: str | None = None
    confidence_delta: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "action": self.action,
            "reason": self.reason,
            "worker_before": self.worker_before,
            "worker_after": self.worker_after,
            "confidence_delta": self.confidence_delta,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TrailEntry:
        return cls(
            stage=data["stage"],
            action=data["action"],
            reason=data["reason"],
            worker_before=data.get("worker_before"),
            worker_after=data.get("worker_after"),
            confidence_delta=float(data.get("confidence_delta", 0.0)),
        )


@dataclass(frozen=True)
class DecisionState:
    """Worker choice plus the trail that produced it."""

    inputs: DecisionInputs
    worker: str | None = None
    baseline_confidence: float = 0.0
    trail: tuple[TrailEntry, ...] = ()
    privacy_enforced: bool = False

    @property
    def confidence(self) -> float:
        total = self.baseline_confidence + sum(e.confidence_delta for e in self.trail)
        return round(clamp(total), 3)

    def switch(self, stage: str, worker: str, reason: str, delta: float = 0.0) -> DecisionState:
        entry = TrailEntry(
            stage=stage,
            action="override",
            reason=reason,
            worker_before=self.worker,
            worker_after=worker,
            confidence_delta=round(delta, 4),
        )
        return replace(self, worker=worker, trail=self.trail + (entry,))

    def note(
        self, stage: str, action: str, reason: str, delta: float = 0.0
    ) -> DecisionState:
        entry = TrailEntry(
            stage=stage,
            action=action,
            reason=reason,
            worker_before=self.worker,
            worker_after=self.worker,
            confidence_delta=round(delta, 4),
        )
        return replace(self, trail=self.trail + (entry,))

    def overrides(self) -> list[TrailEntry]:
        return [e for e in self.trail if e.action == "override"]
