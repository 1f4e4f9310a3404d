"""Cognitive state estimation.

Scores the user's likely capacity at a given hour and how well the task fits
that capacity, then derives decision thresholds and accommodation
recommendations. Pure: identical inputs give identical outputs.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final

from adaptive_router.classification import ClassificationResult
from adaptive_router.models import Level, UserProfile, clamp

# ═══════════════════════════════════════════════════════════════════════════
# TUNING
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class EstimatorTuning:
    """Circadian and alignment constants."""

    peak_capacity: float = 0.9
    trough_capacity: float = 0.4
    default_capacity: float = 0.7
    # Always treated as trough, on top of the profile's low-energy hours
    night_hours: tuple[int, ...] = (20, 21, 22, 23, 0, 1, 2, 3, 4, 5)
    post_midday_trough: tuple[int, ...] = (13, 14, 15)
    hyperfocus_categories: tuple[str, ...] = ("code", "debug")
    hyperfocus_min_base: float = 0.6
    focus_boost: float = 1.1
    focus_boost_variability: float = 1.3
    trough_factor: float = 0.9
    trough_factor_variability: float = 0.7
    interruption_factor: float = 0.8
    switching_factors: Mapping[Level, float] = field(
        default_factory=lambda: {Level.LOW: 0.95, Level.MEDIUM: 0.85, Level.HIGH: 0.7}
    )
    capacity_high: float = 0.8
    capacity_medium: float = 0.5
    # Alignment
    alignment_base: float = 0.5
    mismatch_penalty: float = 0.3
    easy_task_bonus: float = 0.1
    level_match_bonus: float = 0.2
    friendly_bonus: float = 0.3
    challenging_penalty: float = 0.2
    clarity_bonus: float = 0.1
    variability_friendly: tuple[str, ...] = ("debug", "code", "quick_query")
    variability_challenging: tuple[str, ...] = ("research", "analyze", "write")
    clarity_categories: tuple[str, ...] = ("explain", "debug", "analyze")
    alignment_high: float = 0.7
    alignment_medium: float = 0.4
    # Decision thresholds
    proceed_threshold: float = 0.8
    proceed_threshold_variability: float = 0.7
    clarification_threshold: float = 0.5
    clarification_threshold_variability: float = 0.6
    model_switch_threshold: float = 0.8
    state_shift: float = 0.1


DEFAULT_ESTIMATOR_TUNING: Final = EstimatorTuning()


# ═══════════════════════════════════════════════════════════════════════════
# STATE TYPES
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ActivityContext:
    """Recent activity signals reported by the caller."""

    recent_interruptions: bool = False
    recent_task_switch: bool = False


@dataclass(frozen=True)
class CapacityAssessment:
    level: Level
    score: float
    factors: tuple[str, ...] = ()
    focus_window: bool = False


@dataclass(frozen=True)
class AlignmentAssessment:
    level: Level
    score: float
    mismatches: tuple[str, ...] = ()
    factors: tuple[str, ...] = ()


@dataclass(frozen=True)
class DecisionPreferences:
    proceed_threshold: float
    clarification_threshold: float
    model_switch_threshold: float
    prefer_quick_decisions: bool = False
    prefer_familiar: bool = False


@dataclass(frozen=True)
class Recommendation:
    kind: str
    message: str
    priority: Level = Level.MEDIUM


@dataclass(frozen=True)
class CognitiveState:
    """Capacity and task alignment for one request."""

    capacity: CapacityAssessment
    alignment: AlignmentAssessment
    decision_preferences: DecisionPreferences
    recommendations: tuple[Recommendation, ...] = ()
    hour: int = 0
    period: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "capacity": {
                "level": str(self.capacity.level),
                "score": self.capacity.score,
                "factors": list(self.capacity.factors),
                "focus_window": self.capacity.focus_window,
            },
            "alignment": {
                "level": str(self.alignment.level),
                "score": self.alignment.score,
                "mismatches": list(self.alignment.mismatches),
                "factors": list(self.alignment.factors),
            },
            "decision_preferences": {
                "proceed_threshold": self.decision_preferences.proceed_threshold,
                "clarification_threshold": self.decision_preferences.clarification_threshold,
                "model_switch_threshold": self.decision_preferences.model_switch_threshold,
                "prefer_quick_decisions": self.decision_preferences.prefer_quick_decisions,
                "prefer_familiar": self.decision_preferences.prefer_familiar,
            },
            "recommendations": [
                {"kind": r.kind, "message": r.message, "priority": str(r.priority)}
                for r in self.recommendations
            ],
            "hour": self.hour,
            "period": self.period,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CognitiveState:
        cap = data["capacity"]
        ali = data["alignment"]
        return cls(
            capacity=CapacityAssessment(
                level=Level(cap["level"]),
                score=float(cap["score"]),
                factors=tuple(cap.get("factors", ())),
                focus_window=bool(cap.get("focus_window", False)),
            ),
            alignment=AlignmentAssessment(
                level=Level(ali["level"]),
                score=float(ali["score"]),
                mismatches=tuple(ali.get("mismatches", ())),
                factors=tuple(ali.get("factors", ())),
            ),
            decision_preferences=DecisionPreferences(**data["decision_preferences"]),
            recommendations=tuple(
                Recommendation(r["kind"], r["message"], Level(r["priority"]))
                for r in data.get("recommendations", ())
            ),
            hour=int(data.get("hour", 0)),
            period=data.get("period"),
        )


# ═══════════════════════════════════════════════════════════════════════════
# ESTIMATOR
# ═══════════════════════════════════════════════════════════════════════════

HIGH_COMPLEXITY_MISMATCH: Final = "high complexity task with low capacity"
VARIABILITY_MISMATCH: Final = "attention-demanding task with low capacity"

_PRIORITY_ORDER: Final = {Level.HIGH: 0, Level.MEDIUM: 1, Level.LOW: 2}


def _bucket(score: float, high: float, medium: float) -> Level:
    if score >= high:
        return Level.HIGH
    if score >= medium:
        return Level.MEDIUM
    return Level.LOW


class CognitiveStateEstimator:
    """Estimate capacity and alignment from profile, time and task."""

    def __init__(self, tuning: EstimatorTuning = DEFAULT_ESTIMATOR_TUNING) -> None:
        self.tuning = tuning

    def estimate(
        self,
        profile: UserProfile,
        timestamp: datetime,
        classification: ClassificationResult,
        activity: ActivityContext | None = None,
    ) -> CognitiveState:
        """Build the cognitive state for one request.

        Args:
            profile: The user's profile
            timestamp: Wall-clock time of the request (local time)
            classification: Classifier output for the task
            activity: Optional recent-activity signals

        Returns:
            CognitiveState with both scores clamped to [0, 1]
        """
        activity = activity or ActivityContext()
        hour = timestamp.hour
        capacity = self._capacity(profile, hour, classification.primary_category, activity)
        alignment = self._alignment(profile, classification, capacity)
        period = profile.time_profile.period_for(hour)
        return CognitiveState(
            capacity=capacity,
            alignment=alignment,
            decision_preferences=self._decision_preferences(profile, capacity),
            recommendations=self._recommendations(profile, classification, capacity, alignment),
            hour=hour,
            period=period.name if period else None,
        )

    # ── capacity ─────────────────────────────────────────────────────────

    def _capacity(
        self, profile: UserProfile, hour: int, category: str, activity: ActivityContext
    ) -> CapacityAssessment:
        t = self.tuning
        factors: list[str] = []
        trough = set(profile.time_profile.low_energy_hours) | set(t.night_hours)

        if hour in profile.time_profile.peak_hours:
            score = t.peak_capacity
            factors.append("circadian_peak")
        elif hour in trough:
            score = t.trough_capacity
            factors.append("circadian_trough")
        else:
            score = t.default_capacity

        variability = profile.attention_variability
        focus_window = False
        if category in t.hyperfocus_categories and score > t.hyperfocus_min_base:
            score *= t.focus_boost_variability if variability else t.focus_boost
            focus_window = variability
            factors.append("hyperfocus_potential" if variability else "focus_task")
        elif hour in t.post_midday_trough:
            score *= t.trough_factor_variability if variability else t.trough_factor
            factors.append("post_midday_trough")

        if activity.recent_interruptions:
            score *= t.interruption_factor
            factors.append("recent_interruptions")
        if activity.recent_task_switch:
            score *= t.switching_factors.get(profile.switching_cost, 1.0)
            factors.append(f"task_switching_{profile.switching_cost}")

        score = round(clamp(score), 3)
        return CapacityAssessment(
            level=_bucket(score, t.capacity_high, t.capacity_medium),
            score=score,
            factors=tuple(factors),
            focus_window=focus_window,
        )

    # ── alignment ────────────────────────────────────────────────────────

    def _alignment(
        self,
        profile: UserProfile,
        classification: ClassificationResult,
        capacity: CapacityAssessment,
    ) -> AlignmentAssessment:
        t = self.tuning
        score = t.alignment_base
        mismatches: list[str] = []
        factors: list[str] = []
        complexity = classification.complexity.level
        category = classification.primary_category

        if complexity == Level.HIGH and capacity.level == Level.LOW:
            score -= t.mismatch_penalty
            mismatches.append(HIGH_COMPLEXITY_MISMATCH)
        elif complexity == Level.LOW and capacity.level == Level.HIGH:
            score += t.easy_task_bonus
            factors.append("simple task with spare capacity")
        elif complexity == capacity.level:
            score += t.level_match_bonus
            factors.append(f"complexity matches capacity ({complexity})")

        if profile.attention_variability:
            if category in t.variability_friendly and capacity.focus_window:
                score += t.friendly_bonus
                factors.append("focus-friendly task in a focus window")
            elif category in t.variability_challenging and capacity.level == Level.LOW:
                score -= t.challenging_penalty
                mismatches.append(VARIABILITY_MISMATCH)

        if profile.clarity_first and category in t.clarity_categories:
            score += t.clarity_bonus
            factors.append("clarity-first preference fits task")

        score = round(clamp(score), 3)
        return AlignmentAssessment(
            level=_bucket(score, t.alignment_high, t.alignment_medium),
            score=score,
            mismatches=tuple(mismatches),
            factors=tuple(factors),
        )

    # ── thresholds and advice ────────────────────────────────────────────

    def _decision_preferences(
        self, profile: UserProfile, capacity: CapacityAssessment
    ) -> DecisionPreferences:
        t = self.tuning
        variability = profile.attention_variability
        shift = 0.0
        if capacity.level == Level.HIGH:
            shift = -t.state_shift
        elif capacity.level == Level.LOW:
            shift = t.state_shift

        proceed = t.proceed_threshold_variability if variability else t.proceed_threshold
        clarify = (
            t.clarification_threshold_variability if variability else t.clarification_threshold
        )
        return DecisionPreferences(
            proceed_threshold=round(clamp(proceed + shift), 3),
            clarification_threshold=round(clamp(clarify + shift), 3),
            model_switch_threshold=round(clamp(t.model_switch_threshold + shift), 3),
            prefer_quick_decisions=variability or capacity.level == Level.LOW,
            prefer_familiar=capacity.level == Level.LOW,
        )

    def _recommendations(
        self,
        profile: UserProfile,
        classification: ClassificationResult,
        capacity: CapacityAssessment,
        alignment: AlignmentAssessment,
    ) -> tuple[Recommendation, ...]:
        category = classification.primary_category
        recs: list[Recommendation] = []

        if capacity.level == Level.LOW:
            recs.append(
                Recommendation("break_down", "Break the task into smaller units", Level.HIGH)
            )
            if classification.complexity.level == Level.HIGH:
                recs.append(Recommendation(
                    "postpone", "Postpone or simplify: high complexity at low capacity", Level.HIGH
                ))
        if capacity.focus_window:
            recs.append(Recommendation("deep_work", "Good window for deep technical work"))
        if (
            profile.attention_variability
            and category == "research"
            and capacity.level != Level.HIGH
        ):
            recs.append(Recommendation("focused_search", "Use focused search terms to limit scope"))
        if profile.clarity_first and category in ("explain", "analyze"):
            recs.append(Recommendation(
                "structured_output", "Ask for structured, step-by-step output", Level.LOW
            ))
        if alignment.score < self.tuning.alignment_medium:
            recs.append(Recommendation(
                "postpone", "Consider postponing until capacity improves", Level.HIGH
            ))
            recs.append(
                Recommendation("break_down", "Break the task into smaller pieces", Level.HIGH)
            )
        if HIGH_COMPLEXITY_MISMATCH in alignment.mismatches:
            recs.append(Recommendation("scaffolding", "Outline the steps before starting"))
        if VARIABILITY_MISMATCH in alignment.mismatches:
            recs.append(Recommendation("timebox", "Work in short timeboxed intervals"))

        seen: set[str] = set()
        unique = []
        for rec in recs:
            if rec.kind not in seen:
                seen.add(rec.kind)
                unique.append(rec)
        unique.sort(key=lambda r: _PRIORITY_ORDER[r.priority])
        return tuple(unique)


_default_estimator = CognitiveStateEstimator()


def estimate_cognitive_state(
    profile: UserProfile,
    timestamp: datetime,
    classification: ClassificationResult,
    activity: ActivityContext | None = None,
) -> CognitiveState:
    """Estimate with the default tuning."""
    return _default_estimator.estimate(profile, timestamp, classification, activity)
