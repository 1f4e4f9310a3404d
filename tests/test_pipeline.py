"""Tests for the decision-fusion stages and pipeline."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest

from adaptive_router.classification import classify
from adaptive_router.cognition import estimate_cognitive_state
from adaptive_router.errors import ValidationFailure
from adaptive_router.models import UserProfile, WorkerPerformance
from adaptive_router.registry import WorkerRegistry, WorkerSpec
from adaptive_router.routing import (
    DecisionInputs,
    DecisionPipeline,
    DecisionState,
    PipelineTuning,
    baseline,
    cognitive_override,
    performance_override,
    preference_override,
    privacy_override,
    time_aware_override,
)

DEBUG_TASK = "TypeError: Cannot read property 'x' of undefined, please fix"


def make_inputs(
    text: str,
    hour: int,
    profile: UserProfile | None = None,
    performance: dict[str, WorkerPerformance] | None = None,
    tuning: PipelineTuning | None = None,
    registry: WorkerRegistry | None = None,
) -> DecisionInputs:
    profile = profile or UserProfile(user_id="u1")
    timestamp = datetime(2026, 3, 2, hour, 0)
    classification = classify(text)
    return DecisionInputs(
        classification=classification,
        cognitive=estimate_cognitive_state(profile, timestamp, classification),
        profile=profile,
        timestamp=timestamp,
        performance=performance,
        registry=registry or WorkerRegistry(),
        tuning=tuning or PipelineTuning(),
    )


def start(inputs: DecisionInputs) -> DecisionState:
    return baseline(DecisionState(inputs=inputs))


class TestBaseline:
    def test_uses_category_default(self) -> None:
        state = start(make_inputs(DEBUG_TASK, 10))
        assert state.worker == "claude-3.5-sonnet"
        assert state.confidence == pytest.approx(0.5)
        assert state.trail[0].action == "baseline"

    def test_unknown_category_uses_default_worker(self) -> None:
        state = start(make_inputs("   ", 10))
        assert state.worker == "smollm3"
        assert state.confidence == pytest.approx(0.3)


class TestTimeAware:
    def test_period_preference_switches_worker(self) -> None:
        state = time_aware_override(start(make_inputs(DEBUG_TASK, 13)))
        assert state.worker == "gpt-4"
        assert state.trail[-1].stage == "time_aware"
        assert state.trail[-1].confidence_delta == pytest.approx(0.1)

    def test_disabled_flag_is_noop(self) -> None:
        inputs = make_inputs(DEBUG_TASK, 13, tuning=PipelineTuning(time_aware_routing=False))
        before = start(inputs)
        assert time_aware_override(before) is before


class TestCognitive:
    def test_low_alignment_prefers_fast_local(self) -> None:
        state = cognitive_override(start(make_inputs(DEBUG_TASK, 23)))
        assert state.worker == "smollm3"
        assert "low task alignment" in state.trail[-1].reason

    def test_focus_window_permits_capable_worker(self) -> None:
        profile = UserProfile(user_id="u2", cognitive_tags=("adhd",))
        tuning = PipelineTuning(category_workers={"debug": "codellama"})
        state = cognitive_override(start(make_inputs(DEBUG_TASK, 10, profile, tuning=tuning)))
        assert state.worker == "gpt-4"
        assert state.trail[-1].confidence_delta == pytest.approx(0.15)


class TestPerformance:
    def test_missing_summary_records_recovery(self) -> None:
        state = performance_override(start(make_inputs("Summarize this report", 12)))
        assert state.worker == "smollm3"
        entry = state.trail[-1]
        assert entry.action == "recovery"
        assert entry.confidence_delta == pytest.approx(-0.05)

    def test_clearly_better_worker_wins(self) -> None:
        summary = {
            "claude-3.5-sonnet": WorkerPerformance(10, 1.0, avg_latency_ms=1000, avg_rating=5.0),
            "smollm3": WorkerPerformance(10, 0.5, avg_latency_ms=500, avg_rating=3.0),
        }
        inputs = make_inputs("Summarize this report", 12, performance=summary)
        state = performance_override(start(inputs))
        assert state.worker == "claude-3.5-sonnet"
        assert state.trail[-1].confidence_delta == pytest.approx(0.2)

    def test_small_samples_are_ignored(self) -> None:
        summary = {"claude-3.5-sonnet": WorkerPerformance(3, 1.0, avg_rating=5.0)}
        before = start(make_inputs("Summarize this report", 12, performance=summary))
        assert performance_override(before) is before


class TestPreference:
    def test_declared_preference_applies(self) -> None:
        profile = UserProfile(user_id="u1", preferences={"write": "claude-3.5-sonnet"})
        state = preference_override(start(make_inputs("Write an essay about dogs", 10, profile)))
        assert state.worker == "claude-3.5-sonnet"
        assert state.trail[-1].confidence_delta == pytest.approx(0.05)

    def test_suppressed_under_high_uncertainty(self) -> None:
        profile = UserProfile(user_id="u1", preferences={"general": "perplexity"})
        state = preference_override(start(make_inputs("Bananas are yellow", 12, profile)))
        assert state.worker == "smollm3"
        assert state.trail[-1].action == "suppressed"

    def test_uncertainty_safe_worker_passes(self) -> None:
        profile = UserProfile(user_id="u1", preferences={"general": "gpt-4"})
        state = preference_override(start(make_inputs("Bananas are yellow", 12, profile)))
        assert state.worker == "gpt-4"


class TestPrivacy:
    def test_sensitive_task_at_night_stays_local(self) -> None:
        profile = UserProfile(
            user_id="u1", preferences={"sensitive": "gpt-4", "write": "gpt-4"}
        )
        inputs = make_inputs("This is confidential and private", 23, profile)
        result = DecisionPipeline().run(inputs)

        registry = inputs.registry
        assert inputs.classification.primary_category == "sensitive"
        assert registry.is_local_capable(result.worker)
        assert result.fallback_chain
        assert all(registry.is_local_capable(w) for w in result.fallback_chain)
        assert result.state.privacy_enforced
        assert result.state.trail[-1].stage == "privacy"
        assert result.confidence == pytest.approx(0.8)

    def test_local_only_window_forces_local(self) -> None:
        result = DecisionPipeline().run(make_inputs("Write an essay about dogs", 23))
        assert result.worker == "smollm3"
        assert result.state.privacy_enforced

    def test_window_ignored_without_local_first(self) -> None:
        tuning = PipelineTuning(local_first_routing=False)
        result = DecisionPipeline().run(make_inputs("Write an essay about dogs", 23, tuning=tuning))
        assert result.worker == "gpt-4"
        assert not result.state.privacy_enforced

    def test_local_only_posture(self) -> None:
        profile = UserProfile(user_id="u1", privacy_posture="local_only")
        result = DecisionPipeline().run(make_inputs(DEBUG_TASK, 10, profile))
        assert result.state.privacy_enforced
        assert WorkerRegistry().is_local_capable(result.worker)

    def test_no_local_worker_raises(self) -> None:
        registry = WorkerRegistry([WorkerSpec("gpt-4", tier="capable")])
        state = start(make_inputs("This is confidential and private", 12, registry=registry))
        with pytest.raises(ValidationFailure):
            privacy_override(state)


class TestPipeline:
    def test_trail_explains_every_switch(self) -> None:
        result = DecisionPipeline().run(make_inputs(DEBUG_TASK, 13))
        switches = result.state.overrides()
        assert switches
        for entry in switches:
            assert entry.worker_before != entry.worker_after
            assert entry.reason

    def test_run_is_deterministic(self) -> None:
        inputs = make_inputs("Write an essay about dogs", 10)
        assert DecisionPipeline().run(inputs) == DecisionPipeline().run(inputs)

    def test_custom_stage_order(self) -> None:
        pipeline = DecisionPipeline(stages=(baseline, privacy_override))
        result = pipeline.run(make_inputs("Write an essay about dogs", 10))
        assert result.worker == "gpt-4"
        assert [e.stage for e in result.state.trail] == ["baseline"]

    def test_empty_stage_list_rejected(self) -> None:
        with pytest.raises(ValueError):
            DecisionPipeline(stages=())


def test_stages_do_not_mutate_input() -> None:
    inputs = make_inputs(DEBUG_TASK, 23)
    before = start(inputs)
    snapshot = replace(before)
    cognitive_override(before)
    assert before == snapshot
