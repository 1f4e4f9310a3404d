"""Drift records and profile-update suggestions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from adaptive_router.models import TimeWindow


@dataclass(frozen=True)
class DriftRecord:
    """Divergence between a declared preference and observed routing."""

    user_id: str
    category: str
    declared_preference: str
    observed_dominant_worker: str
    usage_rates: Mapping[str, float]
    preferred_rate: float
    dominant_rate: float
    drift_magnitude: float
    confidence: float
    consistency: float
    mean_routing_confidence: float
    sample_size: int
    window: TimeWindow
    severity: float = 0.0
    recommendation: str = ""
    timespan: str = ""
    detected_at: datetime = field(default_factory=datetime.now)
    run_id: str = ""

    def __post_init__(self) -> None:
        for name in ("drift_magnitude", "confidence", "consistency"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "category": self.category,
            "declared_preference": self.declared_preference,
            "observed_dominant_worker": self.observed_dominant_worker,
            "usage_rates": dict(self.usage_rates),
            "preferred_rate": self.preferred_rate,
            "dominant_rate": self.dominant_rate,
            "drift_magnitude": self.drift_magnitude,
            "confidence": self.confidence,
            "consistency": self.consistency,
            "mean_routing_confidence": self.mean_routing_confidence,
            "sample_size": self.sample_size,
            "window": {
                "start": self.window.start.isoformat(timespec="seconds"),
                "end": self.window.end.isoformat(timespec="seconds"),
            },
            "severity": self.severity,
            "recommendation": self.recommendation,
            "timespan": self.timespan,
            "detected_at": self.detected_at.isoformat(timespec="seconds"),
            "run_id": self.run_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DriftRecord:
        window = data["window"]
        return cls(
            user_id=data["user_id"],
            category=data["category"],
            declared_preference=data["declared_preference"],
            observed_dominant_worker=data["observed_dominant_worker"],
            usage_rates=dict(data["usage_rates"]),
            preferred_rate=float(data["preferred_rate"]),
            dominant_rate=float(data["dominant_rate"]),
            drift_magnitude=float(data["drift_magnitude"]),
            confidence=float(data["confidence"]),
            consistency=float(data["consistency"]),
            mean_routing_confidence=float(data["mean_routing_confidence"]),
            sample_size=int(data["sample_size"]),
            window=TimeWindow(
                start=datetime.fromisoformat(window["start"]),
                end=datetime.fromisoformat(window["end"]),
            ),
            severity=float(data.get("severity", 0.0)),
            recommendation=data.get("recommendation", ""),
            timespan=data.get("timespan", ""),
            detected_at=datetime.fromisoformat(data["detected_at"]),
            run_id=data.get("run_id", ""),
        )


class SuggestionStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Suggestion:
    """Proposed profile change derived from a drift record."""

    user_id: str
    setting_path: str
    current_value: str | None
    suggested_value: str
    reasoning: str
    confidence: float
    priority: float = 0.0
    risk_level: str = "medium"
    urgency: str = "low"
    estimated_improvement: str = ""
    evidence: Mapping[str, Any] = field(default_factory=dict)
    status: SuggestionStatus = SuggestionStatus.PENDING
    rejection_reason: str | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None
    applied_at: datetime | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {self.confidence}")

    @property
    def category(self) -> str:
        return self.setting_path.partition(".")[2]

    @property
    def is_pending(self) -> bool:
        return self.status == SuggestionStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        def ts(value: datetime | None) -> str | None:
            return value.isoformat(timespec="seconds") if value else None

        return {
            "id": self.id,
            "user_id": self.user_id,
            "setting_path": self.setting_path,
            "current_value": self.current_value,
            "suggested_value": self.suggested_value,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "priority": self.priority,
            "risk_level": self.risk_level,
            "urgency": self.urgency,
            "estimated_improvement": self.estimated_improvement,
            "evidence": dict(self.evidence),
            "status": str(self.status),
            "rejection_reason": self.rejection_reason,
            "created_at": ts(self.created_at),
            "decided_at": ts(self.decided_at),
            "applied_at": ts(self.applied_at),
        }


@dataclass(frozen=True)
class SuggestionResult:
    """Answer to an accept or reject request. Never raised."""

    suggestion_id: int
    applied: bool
    status: SuggestionStatus | None
    message: str


@dataclass(frozen=True)
class SuggestionStats:
    """Generation and acceptance counts for the learning loop."""

    generated: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    applied: int = 0

    @property
    def acceptance_rate(self) -> float:
        """Accepted share of decided suggestions; 0.0 before any decision."""
        decided = self.accepted + self.rejected
        return round(self.accepted / decided, 3) if decided else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated": self.generated,
            "pending": self.pending,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "applied": self.applied,
            "acceptance_rate": self.acceptance_rate,
        }
