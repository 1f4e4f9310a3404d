"""AdaptiveRouter: the public entry point wiring classifier, estimator,
pipeline, stores and the learning loop together."""

from __future__ import annotations

from datetime import datetime

from adaptive_router.classification import ClassificationResult, TaskClassifier
from adaptive_router.cognition import ActivityContext, CognitiveState, CognitiveStateEstimator
from adaptive_router.config import RouterConfig
from adaptive_router.errors import UpstreamDataUnavailable
from adaptive_router.interfaces import PerformanceSource
from adaptive_router.learning import (
    DriftRecord,
    PreferenceDriftDetector,
    Suggestion,
    SuggestionEngine,
    SuggestionResult,
    SuggestionStats,
    SuggestionStatus,
)
from adaptive_router.logging_config import get_logger
from adaptive_router.models import Outcome, PerformanceSummary, TimeWindow, UserProfile
from adaptive_router.routing import DecisionInputs, DecisionPipeline, RoutingDecision, excerpt
from adaptive_router.storage import (
    Database,
    DecisionLog,
    DriftStore,
    ProfileStore,
    SuggestionStore,
)

log = get_logger(__name__)


class AdaptiveRouter:
    """Route tasks to workers and learn from the results.

    The online path (``route``) is synchronous and reads only the profile and
    a performance snapshot. ``route_for_user`` and ``record_outcome`` are
    async because the performance ledger is.
    """

    def __init__(
        self,
        config: RouterConfig | None = None,
        db: Database | None = None,
        ledger: PerformanceSource | None = None,
        classifier: TaskClassifier | None = None,
        estimator: CognitiveStateEstimator | None = None,
        pipeline: DecisionPipeline | None = None,
    ) -> None:
        self.config = config or RouterConfig()
        self.db = db or Database(self.config.data_dir)
        self.ledger = ledger
        self.registry = self.config.registry()
        self.tuning = self.config.pipeline_tuning()
        self.classifier = classifier or TaskClassifier()
        self.estimator = estimator or CognitiveStateEstimator()
        self.pipeline = pipeline or DecisionPipeline()

        self.profiles = ProfileStore(self.db)
        self.decisions = DecisionLog(self.db)
        self.detector = PreferenceDriftDetector(
            self.decisions, self.profiles, DriftStore(self.db), self.config.drift_tuning()
        )
        self.suggestions = SuggestionEngine(
            self.detector, self.profiles, SuggestionStore(self.db), self.config.suggestion_tuning()
        )

    # ═══════════════════════════════════════════════════════════════════
    # ONLINE PATH
    # ═══════════════════════════════════════════════════════════════════

    def classify(self, text: object) -> ClassificationResult:
        return self.classifier.classify(text)

    def estimate_cognitive_state(
        self,
        profile: UserProfile,
        timestamp: datetime,
        classification: ClassificationResult,
        activity: ActivityContext | None = None,
    ) -> CognitiveState:
        return self.estimator.estimate(profile, timestamp, classification, activity)

    def route(
        self,
        text: str,
        profile: UserProfile,
        timestamp: datetime | None = None,
        performance_summary: PerformanceSummary | None = None,
        activity: ActivityContext | None = None,
    ) -> RoutingDecision:
        """Classify, estimate, fuse and log one routing decision.

        ``performance_summary=None`` means the data is unavailable; the
        performance stage is skipped and the trail records it.

        Raises:
            ValidationFailure: if a privacy-forced decision cannot stay local
        """
        timestamp = timestamp or datetime.now()
        classification = self.classify(text)
        return self._decide(text, classification, profile, timestamp, performance_summary, activity)

    async def route_for_user(
        self,
        user_id: str,
        text: str,
        timestamp: datetime | None = None,
        activity: ActivityContext | None = None,
    ) -> RoutingDecision:
        """Load the profile and performance snapshot, then route.

        Raises:
            MissingProfile: if the user has no profile
            ValidationFailure: if a privacy-forced decision cannot stay local
        """
        timestamp = timestamp or datetime.now()
        profile = self.profiles.get_profile(user_id)
        classification = self.classify(text)
        summary = await self.performance_summary(classification.primary_category, timestamp)
        return self._decide(text, classification, profile, timestamp, summary, activity)

    async def performance_summary(
        self, category: str, timestamp: datetime | None = None
    ) -> PerformanceSummary | None:
        """Point-in-time performance snapshot, or None if unavailable."""
        if self.ledger is None:
            return None
        window = TimeWindow.last(days=self.config.performance_window_days, now=timestamp)
        try:
            return await self.ledger.get_summary(category, window)
        except UpstreamDataUnavailable as exc:
            log.warning("performance_unavailable", category=category, error=str(exc))
            return None

    def _decide(
        self,
        text: str,
        classification: ClassificationResult,
        profile: UserProfile,
        timestamp: datetime,
        performance_summary: PerformanceSummary | None,
        activity: ActivityContext | None,
    ) -> RoutingDecision:
        cognitive = self.estimate_cognitive_state(profile, timestamp, classification, activity)
        inputs = DecisionInputs(
            classification=classification,
            cognitive=cognitive,
            profile=profile,
            timestamp=timestamp,
            performance=performance_summary,
            registry=self.registry,
            tuning=self.tuning,
        )
        result = self.pipeline.run(inputs)
        decision = RoutingDecision(
            user_id=profile.user_id,
            task_excerpt=excerpt(text),
            classification=classification,
            cognitive_state=cognitive,
            worker_id=result.worker,
            confidence=result.confidence,
            trail=result.state.trail,
            fallback_chain=result.fallback_chain,
            privacy_enforced=result.state.privacy_enforced,
            profile_version=profile.version,
            created_at=timestamp,
        )
        self.decisions.append(decision)
        log.info(
            "decision_routed",
            decision_id=decision.decision_id,
            user_id=profile.user_id,
            category=decision.category,
            worker=decision.worker_id,
            confidence=decision.confidence,
            overrides=len(result.state.overrides()),
            privacy_enforced=decision.privacy_enforced,
        )
        return decision

    async def record_outcome(
        self,
        decision_id: str,
        success: bool,
        latency_ms: float | None = None,
        rating: int | None = None,
    ) -> RoutingDecision:
        """Attach an execution outcome and feed the performance ledger.

        The ledger is written first so a ledger failure leaves the decision
        log untouched.

        Raises:
            DecisionNotFound: if the decision does not exist
            ValueError: if the decision already has an outcome
            UpstreamDataUnavailable: if the performance ledger cannot be written
        """
        outcome = Outcome(success=success, latency_ms=latency_ms, rating=rating)
        pending = self.decisions.get(decision_id)
        if pending.outcome is not None:
            raise ValueError(f"decision {decision_id!r} already has an outcome")
        if self.ledger is not None:
            try:
                await self.ledger.record_outcome(
                    pending.worker_id,
                    pending.category,
                    success,
                    latency_ms=latency_ms,
                    rating=rating,
                    decision_id=decision_id,
                    recorded_at=outcome.recorded_at,
                )
            except UpstreamDataUnavailable as exc:
                log.warning("outcome_not_recorded", decision_id=decision_id, error=str(exc))
                raise
        decision = self.decisions.record_outcome(decision_id, outcome)
        log.info("outcome_recorded", decision_id=decision_id, success=success)
        return decision

    # ═══════════════════════════════════════════════════════════════════
    # BATCH PATH
    # ═══════════════════════════════════════════════════════════════════

    def _window(self, window: TimeWindow | None) -> TimeWindow:
        return window or TimeWindow.last(days=self.config.drift_window_days)

    def detect_drift(self, user_id: str, window: TimeWindow | None = None) -> list[DriftRecord]:
        return self.detector.detect_drift(user_id, self._window(window))

    def generate_suggestions(
        self, user_id: str, window: TimeWindow | None = None
    ) -> list[Suggestion]:
        return self.suggestions.generate_suggestions(user_id, self._window(window))

    def accept_suggestion(self, suggestion_id: int) -> SuggestionResult:
        return self.suggestions.accept_suggestion(suggestion_id)

    def reject_suggestion(self, suggestion_id: int, reason: str = "") -> SuggestionResult:
        return self.suggestions.reject_suggestion(suggestion_id, reason)

    def pending_suggestions(self, user_id: str | None = None) -> list[Suggestion]:
        return self.suggestions.store.query(user_id=user_id, status=SuggestionStatus.PENDING)

    def suggestion_stats(self, user_id: str | None = None) -> SuggestionStats:
        return self.suggestions.store.stats(user_id)
