"""Tests for the cognitive state estimator."""

from __future__ import annotations

from datetime import datetime

import pytest

from adaptive_router.classification import classify
from adaptive_router.cognition import (
    ActivityContext,
    CognitiveState,
    CognitiveStateEstimator,
    estimate_cognitive_state,
)
from adaptive_router.models import Level, UserProfile

DEBUG_TASK = "TypeError: Cannot read property 'x' of undefined, please fix"


def at(hour: int) -> datetime:
    return datetime(2026, 3, 2, hour, 15)


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(user_id="u1")


@pytest.fixture
def variable_profile() -> UserProfile:
    return UserProfile(user_id="u2", cognitive_tags=("adhd",))


class TestCapacity:
    def test_peak_hour_focus_task(self, profile: UserProfile) -> None:
        state = estimate_cognitive_state(profile, at(10), classify(DEBUG_TASK))
        assert state.capacity.score == pytest.approx(0.99)
        assert state.capacity.level == Level.HIGH
        assert not state.capacity.focus_window
        assert "focus_task" in state.capacity.factors

    def test_attention_variability_opens_focus_window(
        self, variable_profile: UserProfile
    ) -> None:
        state = estimate_cognitive_state(variable_profile, at(10), classify(DEBUG_TASK))
        assert state.capacity.score == 1.0
        assert state.capacity.focus_window
        assert "hyperfocus_potential" in state.capacity.factors
        assert "deep_work" in [r.kind for r in state.recommendations]

    def test_post_midday_trough(self, profile: UserProfile) -> None:
        state = estimate_cognitive_state(profile, at(13), classify("Summarize this report"))
        assert state.capacity.score == pytest.approx(0.36)
        assert state.capacity.level == Level.LOW
        assert "post_midday_trough" in state.capacity.factors

    def test_activity_penalties(self, profile: UserProfile) -> None:
        activity = ActivityContext(recent_interruptions=True, recent_task_switch=True)
        state = estimate_cognitive_state(
            profile, at(12), classify("Summarize this report"), activity
        )
        assert state.capacity.score == pytest.approx(0.476)
        assert state.capacity.level == Level.LOW
        assert "recent_interruptions" in state.capacity.factors
        assert "task_switching_medium" in state.capacity.factors

    def test_scores_stay_in_range_all_day(self, variable_profile: UserProfile) -> None:
        classification = classify(DEBUG_TASK)
        activity = ActivityContext(recent_interruptions=True, recent_task_switch=True)
        for hour in range(24):
            for act in (None, activity):
                state = estimate_cognitive_state(variable_profile, at(hour), classification, act)
                assert 0.0 <= state.capacity.score <= 1.0
                assert 0.0 <= state.alignment.score <= 1.0


class TestAlignment:
    def test_complex_task_at_low_capacity(self, profile: UserProfile) -> None:
        state = estimate_cognitive_state(profile, at(23), classify(DEBUG_TASK))
        assert state.capacity.level == Level.LOW
        assert state.alignment.score == pytest.approx(0.2)
        assert state.alignment.level == Level.LOW
        assert state.alignment.mismatches == ("high complexity task with low capacity",)

        kinds = [r.kind for r in state.recommendations]
        assert len(kinds) == len(set(kinds))
        assert {"break_down", "postpone", "scaffolding"} <= set(kinds)
        # high priority first
        priorities = [r.priority for r in state.recommendations]
        assert priorities.index(Level.HIGH) == 0

    def test_focus_friendly_task_in_focus_window(self, variable_profile: UserProfile) -> None:
        state = estimate_cognitive_state(variable_profile, at(10), classify(DEBUG_TASK))
        assert state.alignment.score == 1.0
        assert state.alignment.level == Level.HIGH


class TestDecisionPreferences:
    def test_variability_lowers_proceed_threshold(
        self, profile: UserProfile, variable_profile: UserProfile
    ) -> None:
        classification = classify("Summarize this report")
        plain = estimate_cognitive_state(profile, at(12), classification)
        variable = estimate_cognitive_state(variable_profile, at(12), classification)
        assert plain.decision_preferences.proceed_threshold == pytest.approx(0.8)
        assert variable.decision_preferences.proceed_threshold == pytest.approx(0.7)
        assert variable.decision_preferences.prefer_quick_decisions

    def test_low_capacity_raises_thresholds(self, profile: UserProfile) -> None:
        state = estimate_cognitive_state(profile, at(23), classify(DEBUG_TASK))
        assert state.decision_preferences.proceed_threshold == pytest.approx(0.9)
        assert state.decision_preferences.prefer_familiar


def test_estimate_is_pure(profile: UserProfile) -> None:
    estimator = CognitiveStateEstimator()
    classification = classify(DEBUG_TASK)
    first = estimator.estimate(profile, at(15), classification)
    second = estimator.estimate(profile, at(15), classification)
    assert first == second


def test_state_dict_round_trip(variable_profile: UserProfile) -> None:
    state = estimate_cognitive_state(variable_profile, at(23), classify(DEBUG_TASK))
    assert state.period == "evening"
    assert CognitiveState.from_dict(state.to_dict()) == state
