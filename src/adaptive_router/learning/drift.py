"""Preference drift detection over historical routing decisions.

For each category with enough samples, compares how often the declared
preferred worker was chosen against the most frequently chosen worker.

Confidence blends three factors:
    confidence = 0.4 * min(n / 20, 1) + 0.4 * consistency + 0.2 * mean_routing_confidence
"""

from __future__ import annotations

import uuid
from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from statistics import fmean
from typing import TYPE_CHECKING, Final

from adaptive_router.classification import UNKNOWN_CATEGORY
from adaptive_router.interfaces import DecisionSource, ProfileSource
from adaptive_router.learning.records import DriftRecord
from adaptive_router.logging_config import get_logger
from adaptive_router.models import TimeWindow, UserProfile
from adaptive_router.routing import RoutingDecision

if TYPE_CHECKING:
    from adaptive_router.storage.learning import DriftStore

log = get_logger(__name__)


@dataclass(frozen=True)
class DriftTuning:
    min_sample_size: int = 5
    significance_threshold: float = 0.3
    confidence_floor: float = 0.7
    sample_saturation: int = 20
    severity_saturation: int = 50
    sample_weight: float = 0.4
    consistency_weight: float = 0.4
    routing_confidence_weight: float = 0.2

    def __post_init__(self) -> None:
        if self.min_sample_size < 1:
            raise ValueError(f"min_sample_size must be >= 1, got {self.min_sample_size}")
        for name in ("significance_threshold", "confidence_floor"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
        total = self.sample_weight + self.consistency_weight + self.routing_confidence_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"confidence weights must sum to 1.0, got {total}")


DEFAULT_DRIFT_TUNING: Final = DriftTuning()


class PreferenceDriftDetector:
    """Batch drift analysis for one user at a time."""

    def __init__(
        self,
        decisions: DecisionSource,
        profiles: ProfileSource,
        store: DriftStore | None = None,
        tuning: DriftTuning = DEFAULT_DRIFT_TUNING,
    ) -> None:
        self.decisions = decisions
        self.profiles = profiles
        self.store = store
        self.tuning = tuning

    def detect_drift(self, user_id: str, window: TimeWindow) -> list[DriftRecord]:
        """Analyze the user's decisions in ``window`` and persist the run.

        Raises:
            MissingProfile: if the user has no profile
            UpstreamDataUnavailable: if the decision log cannot be read
        """
        profile = self.profiles.get_profile(user_id)
        history = self.decisions.query(window, {"user_id": user_id})
        run_id = f"drift-{uuid.uuid4().hex[:12]}"
        records = self.analyze(profile, history, window, run_id=run_id)
        if self.store is not None:
            self.store.save_run(user_id, run_id, records)
        log.info(
            "drift_analyzed",
            user_id=user_id,
            decisions=len(history),
            drift_records=len(records),
            run_id=run_id,
        )
        return records

    def analyze(
        self,
        profile: UserProfile,
        decisions: Sequence[RoutingDecision],
        window: TimeWindow,
        run_id: str = "",
        now: datetime | None = None,
    ) -> list[DriftRecord]:
        """Pure drift computation over an in-memory batch, strongest first."""
        by_category: dict[str, list[RoutingDecision]] = defaultdict(list)
        for decision in decisions:
            if decision.category != UNKNOWN_CATEGORY:
                by_category[decision.category].append(decision)

        detected = now or datetime.now()
        records = []
        for category in sorted(by_category):
            record = self._category_drift(
                profile, category, by_category[category], window, run_id, detected
            )
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: (-r.drift_magnitude, -r.confidence, r.category))
        return records

    def _category_drift(
        self,
        profile: UserProfile,
        category: str,
        group: list[RoutingDecision],
        window: TimeWindow,
        run_id: str,
        detected_at: datetime,
    ) -> DriftRecord | None:
        t = self.tuning
        n = len(group)
        if n < t.min_sample_size:
            return None
        declared = profile.preferred_worker(category)
        if declared is None:
            return None

        counts = Counter(d.worker_id for d in group)
        dominant, dominant_count = min(counts.items(), key=lambda item: (-item[1], item[0]))
        if dominant == declared:
            return None

        rates = {worker: round(count / n, 4) for worker, count in counts.items()}
        preferred_rate = rates.get(declared, 0.0)
        dominant_rate = rates[dominant]
        magnitude = round(dominant_rate - preferred_rate, 4)
        if magnitude <= t.significance_threshold:
            return None

        mean_confidence = fmean(d.confidence for d in group)
        confidence = round(
            min(n / t.sample_saturation, 1.0) * t.sample_weight
            + dominant_rate * t.consistency_weight
            + mean_confidence * t.routing_confidence_weight,
            2,
        )
        if confidence < t.confidence_floor:
            log.debug(
                "drift_below_floor", category=category, confidence=confidence, samples=n
            )
            return None

        return DriftRecord(
            user_id=profile.user_id,
            category=category,
            declared_preference=declared,
            observed_dominant_worker=dominant,
            usage_rates=rates,
            preferred_rate=preferred_rate,
            dominant_rate=dominant_rate,
            drift_magnitude=magnitude,
            confidence=confidence,
            consistency=dominant_rate,
            mean_routing_confidence=round(mean_confidence, 3),
            sample_size=n,
            window=window,
            severity=round(magnitude * min(n / t.severity_saturation, 1.0), 3),
            recommendation=(
                f"Consider switching {category} from {declared} to {dominant} "
                f"({dominant_count} of {n} recent decisions)"
            ),
            timespan=window.describe(),
            detected_at=detected_at,
            run_id=run_id,
        )
