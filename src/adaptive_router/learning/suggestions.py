"""Suggestion engine: turn strong drift into acceptable profile updates.

Only drift that clears a stricter floor than detection becomes a suggestion,
and only when the profile still disagrees with the observed worker at
generation time. Accepting writes one preference back to the profile.

Priority blends volume, impact and confidence:
    priority = 0.3 * min(n / 50, 1) + 0.4 * magnitude + 0.3 * confidence
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from adaptive_router.errors import ProfileVersionConflict, SuggestionStateError
from adaptive_router.interfaces import ProfileSource
from adaptive_router.learning.drift import PreferenceDriftDetector
from adaptive_router.learning.records import (
    DriftRecord,
    Suggestion,
    SuggestionResult,
    SuggestionStatus,
)
from adaptive_router.logging_config import get_logger
from adaptive_router.models import TimeWindow, UserProfile

if TYPE_CHECKING:
    from adaptive_router.storage.learning import SuggestionStore

log = get_logger(__name__)

PREFERENCE_PATH: Final = "preferences"


@dataclass(frozen=True)
class SuggestionTuning:
    confidence_floor: float = 0.75
    min_impact: float = 0.2
    min_sample_size: int = 8
    volume_saturation: int = 50
    volume_weight: float = 0.3
    impact_weight: float = 0.4
    confidence_weight: float = 0.3
    write_attempts: int = 2

    def __post_init__(self) -> None:
        for name in ("confidence_floor", "min_impact"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
        if self.write_attempts < 1:
            raise ValueError(f"write_attempts must be >= 1, got {self.write_attempts}")


DEFAULT_SUGGESTION_TUNING: Final = SuggestionTuning()


def risk_level(confidence: float, sample_size: int) -> str:
    if confidence > 0.9 and sample_size > 20:
        return "low"
    if confidence > 0.8 and sample_size > 10:
        return "medium"
    return "high"


def urgency(priority: float) -> str:
    if priority >= 0.7:
        return "high"
    if priority >= 0.5:
        return "medium"
    return "low"


class SuggestionEngine:
    """Generate, accept and reject profile-update suggestions."""

    def __init__(
        self,
        detector: PreferenceDriftDetector,
        profiles: ProfileSource,
        store: SuggestionStore,
        tuning: SuggestionTuning = DEFAULT_SUGGESTION_TUNING,
    ) -> None:
        self.detector = detector
        self.profiles = profiles
        self.store = store
        self.tuning = tuning

    # ── generation ───────────────────────────────────────────────────────

    def build(self, record: DriftRecord, profile: UserProfile) -> Suggestion | None:
        """Suggestion for one drift record, or None if it does not qualify."""
        t = self.tuning
        if (
            record.confidence < t.confidence_floor
            or record.drift_magnitude < t.min_impact
            or record.sample_size < t.min_sample_size
        ):
            return None

        path = f"{PREFERENCE_PATH}.{record.category}"
        current = profile.get_setting(path)
        if current == record.observed_dominant_worker:
            return None

        volume = min(record.sample_size / t.volume_saturation, 1.0)
        priority = round(
            volume * t.volume_weight
            + record.drift_magnitude * t.impact_weight
            + record.confidence * t.confidence_weight,
            3,
        )
        dominant_count = round(record.dominant_rate * record.sample_size)
        reasoning = (
            f"{record.observed_dominant_worker} handled {record.dominant_rate:.0%} of your "
            f"{record.category} tasks ({dominant_count} of {record.sample_size} decisions "
            f"over {record.timespan}), while {record.declared_preference} handled "
            f"{record.preferred_rate:.0%}."
        )
        return Suggestion(
            user_id=record.user_id,
            setting_path=path,
            current_value=current,
            suggested_value=record.observed_dominant_worker,
            reasoning=reasoning,
            confidence=record.confidence,
            priority=priority,
            risk_level=risk_level(record.confidence, record.sample_size),
            urgency=urgency(priority),
            estimated_improvement=(
                f"{round(record.drift_magnitude * 15)}% faster routing, "
                f"{round(record.confidence * 25)}% better accuracy"
            ),
            evidence={
                "usage_rates": dict(record.usage_rates),
                "sample_size": record.sample_size,
                "drift_magnitude": record.drift_magnitude,
                "severity": record.severity,
                "mean_routing_confidence": record.mean_routing_confidence,
                "run_id": record.run_id,
            },
        )

    def generate_suggestions(self, user_id: str, window: TimeWindow) -> list[Suggestion]:
        """Detect drift and store a pending suggestion for each qualifying record.

        An identical pending suggestion is returned instead of duplicated.

        Raises:
            MissingProfile: if the user has no profile
        """
        records = self.detector.detect_drift(user_id, window)
        # Re-read so the no-op check sees the profile as of generation time
        profile = self.profiles.get_profile(user_id)

        suggestions = []
        for record in records:
            candidate = self.build(record, profile)
            if candidate is None:
                continue
            existing = self.store.find_pending(
                user_id, candidate.setting_path, candidate.suggested_value
            )
            if existing is not None:
                suggestions.append(existing)
                continue
            stored = self.store.add(candidate)
            log.info(
                "suggestion_created",
                suggestion_id=stored.id,
                user_id=user_id,
                setting_path=stored.setting_path,
                suggested_value=stored.suggested_value,
                confidence=stored.confidence,
            )
            suggestions.append(stored)

        suggestions.sort(key=lambda s: (-s.priority, s.id or 0))
        return suggestions

    # ── decisions ────────────────────────────────────────────────────────

    def _close(
        self,
        suggestion: Suggestion,
        status: SuggestionStatus,
        message: str,
        reason: str | None = None,
    ) -> SuggestionResult:
        assert suggestion.id is not None
        try:
            self.store.transition(suggestion.id, status, rejection_reason=reason)
        except SuggestionStateError as exc:
            return self._noop(suggestion.id, exc)
        log.info("suggestion_closed", suggestion_id=suggestion.id, status=str(status))
        return SuggestionResult(suggestion.id, applied=False, status=status, message=message)

    def _noop(self, suggestion_id: int, exc: SuggestionStateError) -> SuggestionResult:
        current = self.store.get(suggestion_id)
        log.warning("suggestion_state_noop", suggestion_id=suggestion_id, reason=str(exc))
        return SuggestionResult(
            suggestion_id, applied=False, status=current.status, message=str(exc)
        )

    def accept_suggestion(self, suggestion_id: int) -> SuggestionResult:
        """Apply a pending suggestion to the profile.

        Idempotent: a suggestion that is no longer pending is a no-op. A
        suggestion whose setting changed since generation is closed as stale.

        Raises:
            SuggestionNotFound: if the id is unknown
        """
        suggestion = self.store.get(suggestion_id)
        if not suggestion.is_pending:
            return self._noop(
                suggestion_id,
                SuggestionStateError(f"suggestion {suggestion_id} is already {suggestion.status}"),
            )

        for _ in range(self.tuning.write_attempts):
            profile = self.profiles.get_profile(suggestion.user_id)
            current = profile.get_setting(suggestion.setting_path)

            if current == suggestion.suggested_value:
                return self._close(
                    suggestion,
                    SuggestionStatus.ACCEPTED,
                    f"profile already uses {current}; nothing to change",
                )
            if current != suggestion.current_value:
                return self._close(
                    suggestion,
                    SuggestionStatus.REJECTED,
                    f"setting changed to {current} since the suggestion was generated",
                    reason=f"stale: {suggestion.setting_path} is now {current}",
                )

            try:
                self.profiles.update_profile_field(
                    suggestion.user_id,
                    suggestion.setting_path,
                    suggestion.suggested_value,
                    expected_version=profile.version,
                )
            except ProfileVersionConflict:
                log.info("suggestion_retry_after_conflict", suggestion_id=suggestion_id)
                continue

            try:
                self.store.transition(suggestion_id, SuggestionStatus.ACCEPTED)
            except SuggestionStateError as exc:
                log.warning("suggestion_raced", suggestion_id=suggestion_id, reason=str(exc))
            self.store.mark_applied(suggestion_id)
            log.info(
                "suggestion_applied",
                suggestion_id=suggestion_id,
                setting_path=suggestion.setting_path,
                value=suggestion.suggested_value,
            )
            return SuggestionResult(
                suggestion_id,
                applied=True,
                status=SuggestionStatus.ACCEPTED,
                message=f"{suggestion.setting_path} set to {suggestion.suggested_value}",
            )

        return SuggestionResult(
            suggestion_id,
            applied=False,
            status=SuggestionStatus.PENDING,
            message="profile changed concurrently; try again",
        )

    def reject_suggestion(self, suggestion_id: int, reason: str = "") -> SuggestionResult:
        """Close a pending suggestion without touching the profile.

        Raises:
            SuggestionNotFound: if the id is unknown
        """
        suggestion = self.store.get(suggestion_id)
        return self._close(
            suggestion,
            SuggestionStatus.REJECTED,
            "suggestion rejected",
            reason=reason or "rejected by user",
        )
