"""Tests for preference drift detection."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from adaptive_router.classification import classify
from adaptive_router.cognition import estimate_cognitive_state
from adaptive_router.learning import DriftTuning, PreferenceDriftDetector
from adaptive_router.models import TimeWindow, UserProfile
from adaptive_router.routing import RoutingDecision
from adaptive_router.storage import Database, DecisionLog, DriftStore, ProfileStore

BASE = datetime(2026, 3, 1, 12, 0)
WINDOW = TimeWindow(start=datetime(2026, 2, 1), end=datetime(2026, 4, 1))
WRITE_TASK = "Write an essay about dogs"


def decisions_for(
    workers: list[str], user_id: str = "u1", text: str = WRITE_TASK, confidence: float = 0.8
) -> list[RoutingDecision]:
    profile = UserProfile(user_id=user_id)
    classification = classify(text)
    cognitive = estimate_cognitive_state(profile, BASE, classification)
    return [
        RoutingDecision(
            user_id=user_id,
            task_excerpt=text,
            classification=classification,
            cognitive_state=cognitive,
            worker_id=worker,
            confidence=confidence,
            trail=(),
            fallback_chain=(),
            created_at=BASE + timedelta(minutes=i),
        )
        for i, worker in enumerate(workers)
    ]


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(user_id="u1", preferences={"write": "worker_A"})


@pytest.fixture
def detector(tmp_path: Path) -> PreferenceDriftDetector:
    db = Database(data_dir=tmp_path / "router")
    return PreferenceDriftDetector(DecisionLog(db), ProfileStore(db), DriftStore(db))


class TestAnalyze:
    def test_dominant_worker_drift(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        history = decisions_for(["worker_B"] * 15 + ["worker_A"] * 5)
        records = detector.analyze(profile, history, WINDOW)

        assert len(records) == 1
        record = records[0]
        assert record.category == "write"
        assert record.declared_preference == "worker_A"
        assert record.observed_dominant_worker == "worker_B"
        assert record.drift_magnitude == pytest.approx(0.5)
        assert record.consistency == pytest.approx(0.75)
        assert record.sample_size == 20
        assert record.confidence == pytest.approx(0.86)
        assert record.usage_rates == {"worker_B": 0.75, "worker_A": 0.25}

    def test_too_few_samples(self, detector: PreferenceDriftDetector, profile: UserProfile) -> None:
        assert detector.analyze(profile, decisions_for(["worker_B"] * 4), WINDOW) == []

    def test_declared_worker_dominant(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        history = decisions_for(["worker_A"] * 8 + ["worker_B"] * 2)
        assert detector.analyze(profile, history, WINDOW) == []

    def test_small_gap_is_not_drift(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        history = decisions_for(["worker_B"] * 6 + ["worker_A"] * 4)
        assert detector.analyze(profile, history, WINDOW) == []

    def test_low_confidence_filtered(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        history = decisions_for(["worker_B"] * 5, confidence=0.1)
        assert detector.analyze(profile, history, WINDOW) == []

    def test_undeclared_category_skipped(self, detector: PreferenceDriftDetector) -> None:
        profile = UserProfile(user_id="u1", preferences={})
        assert detector.analyze(profile, decisions_for(["worker_B"] * 20), WINDOW) == []

    def test_unknown_decisions_ignored(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        history = decisions_for(["worker_B"] * 20, text="   ")
        assert detector.analyze(profile, history, WINDOW) == []

    def test_tie_breaks_by_worker_id(self, detector: PreferenceDriftDetector) -> None:
        profile = UserProfile(user_id="u1", preferences={"write": "worker_A"})
        history = decisions_for(["worker_C"] * 10 + ["worker_B"] * 10)
        records = detector.analyze(profile, history, WINDOW)
        assert records[0].observed_dominant_worker == "worker_B"

    def test_custom_threshold(self, profile: UserProfile, tmp_path: Path) -> None:
        db = Database(data_dir=tmp_path / "router")
        strict = PreferenceDriftDetector(
            DecisionLog(db), ProfileStore(db), tuning=DriftTuning(significance_threshold=0.6)
        )
        history = decisions_for(["worker_B"] * 15 + ["worker_A"] * 5)
        assert strict.analyze(profile, history, WINDOW) == []


class TestDetectDrift:
    def test_reads_log_and_persists_run(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        detector.profiles.create_profile(profile)  # type: ignore[attr-defined]
        for decision in decisions_for(["worker_B"] * 15 + ["worker_A"] * 5):
            detector.decisions.append(decision)

        records = detector.detect_drift("u1", WINDOW)
        assert [r.observed_dominant_worker for r in records] == ["worker_B"]

        store = detector.store
        assert store is not None
        assert [r.category for r in store.latest("u1")] == ["write"]

        # a later run supersedes the earlier one
        detector.detect_drift("u1", WINDOW)
        assert len(store.latest("u1")) == 1

    def test_window_outside_history_is_empty(
        self, detector: PreferenceDriftDetector, profile: UserProfile
    ) -> None:
        detector.profiles.create_profile(profile)  # type: ignore[attr-defined]
        for decision in decisions_for(["worker_B"] * 20):
            detector.decisions.append(decision)
        assert detector.detect_drift("u1", TimeWindow.last(days=1, now=datetime(2026, 1, 1))) == []
