"""Routing decision record: one per routed request."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from adaptive_router.classification import ClassificationResult
from adaptive_router.cognition import CognitiveState
from adaptive_router.models import Outcome
from adaptive_router.routing.state import TrailEntry

EXCERPT_LENGTH = 100


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    flat = " ".join(str(text).split())
    return flat if len(flat) <= length else flat[: length - 3] + "..."


def new_decision_id() -> str:
    return f"dec-{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class RoutingDecision:
    """Chosen worker, confidence, reason trail and fallback chain.

    ``outcome`` stays ``None`` until execution results are reported.
    """

    user_id: str
    task_excerpt: str
    classification: ClassificationResult
    cognitive_state: CognitiveState
    worker_id: str
    confidence: float
    trail: tuple[TrailEntry, ...]
    fallback_chain: tuple[str, ...]
    privacy_enforced: bool = False
    profile_version: int = 1
    created_at: datetime = field(default_factory=datetime.now)
    decision_id: str = field(default_factory=new_decision_id)
    outcome: Outcome | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {self.confidence}")

    @property
    def category(self) -> str:
        return self.classification.primary_category

    @property
    def reasons(self) -> list[str]:
        return [f"{e.stage}: {e.reason}" for e in self.trail]

    def with_outcome(self, outcome: Outcome) -> RoutingDecision:
        return replace(self, outcome=outcome)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "decision_id": self.decision_id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "task_excerpt": self.task_excerpt,
            "category": self.category,
            "worker_id": self.worker_id,
            "confidence": self.confidence,
            "privacy_enforced": self.privacy_enforced,
            "profile_version": self.profile_version,
            "fallback_chain": list(self.fallback_chain),
            "trail": [e.to_dict() for e in self.trail],
            "classification": self.classification.to_dict(),
            "cognitive_state": self.cognitive_state.to_dict(),
            "outcome": None,
        }
        if self.outcome is not None:
            data["outcome"] = {
                "success": self.outcome.success,
                "latency_ms": self.outcome.latency_ms,
                "rating": self.outcome.rating,
                "recorded_at": self.outcome.recorded_at.isoformat(timespec="seconds"),
            }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RoutingDecision:
        outcome_data = data.get("outcome")
        outcome = None
        if outcome_data:
            outcome = Outcome(
                success=bool(outcome_data["success"]),
                latency_ms=outcome_data.get("latency_ms"),
                rating=outcome_data.get("rating"),
                recorded_at=datetime.fromisoformat(outcome_data["recorded_at"]),
            )
        return cls(
            decision_id=data["decision_id"],
            user_id=data["user_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            task_excerpt=data.get("task_excerpt", ""),
            classification=ClassificationResult.from_dict(data["classification"]),
            cognitive_state=CognitiveState.from_dict(data["cognitive_state"]),
            worker_id=data["worker_id"],
            confidence=float(data["confidence"]),
            trail=tuple(TrailEntry.from_dict(e) for e in data.get("trail", ())),
            fallback_chain=tuple(data.get("fallback_chain", ())),
            privacy_enforced=bool(data.get("privacy_enforced", False)),
            profile_version=int(data.get("profile_version", 1)),
            outcome=outcome,
        )
