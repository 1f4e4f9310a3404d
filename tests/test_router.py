"""Tests for the AdaptiveRouter facade."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from adaptive_router.config import RouterConfig
from adaptive_router.errors import DecisionNotFound, MissingProfile, UpstreamDataUnavailable
from adaptive_router.learning import SuggestionStats
from adaptive_router.models import (
    PerformanceSummary,
    TimeWindow,
    UserProfile,
    WorkerPerformance,
)
from adaptive_router.router import AdaptiveRouter
from adaptive_router.storage import PerformanceLedger

pytestmark = pytest.mark.anyio

MORNING = datetime(2026, 3, 2, 10, 0)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class OfflineLedger:
    """Performance source whose backing store is unreachable."""

    async def get_summary(self, category: str, window: TimeWindow) -> PerformanceSummary:
        raise UpstreamDataUnavailable("ledger offline")

    async def record_outcome(self, *args: object, **kwargs: object) -> None:
        raise UpstreamDataUnavailable("ledger offline")


@pytest.fixture
def router(tmp_path: Path) -> AdaptiveRouter:
    r = AdaptiveRouter(RouterConfig(data_dir=tmp_path))
    r.profiles.create_profile(UserProfile(user_id="u1"))
    return r


async def test_route_logs_decision(router: AdaptiveRouter) -> None:
    profile = router.profiles.get_profile("u1")
    decision = router.route("Write an essay about dogs", profile, MORNING)

    assert decision.worker_id == "gpt-4"
    assert decision.category == "write"
    assert decision.profile_version == 1
    assert router.decisions.get(decision.decision_id) == decision
    assert any(e.action == "recovery" for e in decision.trail)


async def test_route_with_performance_snapshot(router: AdaptiveRouter) -> None:
    profile = router.profiles.get_profile("u1")
    summary = {"smollm3": WorkerPerformance(10, 1.0, avg_latency_ms=200, avg_rating=5.0)}
    decision = router.route("Summarize this report", profile, MORNING, summary)
    assert not any(e.action == "recovery" for e in decision.trail)


async def test_route_for_unknown_user(router: AdaptiveRouter) -> None:
    with pytest.raises(MissingProfile):
        await router.route_for_user("ghost", "Write an essay", MORNING)


async def test_outcomes_feed_ledger(tmp_path: Path) -> None:
    config = RouterConfig(data_dir=tmp_path)
    async with PerformanceLedger(tmp_path / "perf.db") as ledger:
        router = AdaptiveRouter(config, ledger=ledger)
        router.profiles.create_profile(UserProfile(user_id="u1"))

        now = datetime.now()
        decision = await router.route_for_user("u1", "Write an essay about dogs", now)
        await router.record_outcome(decision.decision_id, True, latency_ms=900, rating=5)

        window = TimeWindow.last(days=1, now=now + timedelta(minutes=1))
        summary = await ledger.get_summary("write", window)
        assert summary[decision.worker_id].sample_size == 1
        assert router.decisions.get(decision.decision_id).outcome is not None

        with pytest.raises(DecisionNotFound):
            await router.record_outcome("dec-missing", True)


async def test_performance_summary_without_ledger(router: AdaptiveRouter) -> None:
    assert await router.performance_summary("write") is None


async def test_no_drift_when_routing_matches_preference(router: AdaptiveRouter) -> None:
    profile = router.profiles.get_profile("u1")
    two_days_ago = datetime.now() - timedelta(days=2)
    start = two_days_ago.replace(hour=10, minute=0, second=0, microsecond=0)
    for i in range(20):
        decision = router.route("Write an essay about dogs", profile, start + timedelta(minutes=i))
        assert decision.category == "write"

    # The default profile already prefers the routed worker, so nothing drifts.
    assert router.detect_drift("u1") == []
    assert router.generate_suggestions("u1") == []
    assert router.pending_suggestions("u1") == []


async def test_night_routing_drift_becomes_suggestion(router: AdaptiveRouter) -> None:
    profile = router.profiles.get_profile("u1")
    two_days_ago = datetime.now() - timedelta(days=2)
    start = two_days_ago.replace(hour=23, minute=0, second=0, microsecond=0)
    for i in range(20):
        decision = router.route("Write an essay about dogs", profile, start + timedelta(minutes=i))
        assert decision.worker_id == "smollm3"

    records = router.detect_drift("u1")
    assert [(r.category, r.observed_dominant_worker) for r in records] == [("write", "smollm3")]

    suggestions = router.generate_suggestions("u1")
    assert len(suggestions) == 1
    assert router.pending_suggestions("u1") == suggestions

    suggestion_id = suggestions[0].id
    assert suggestion_id is not None
    result = router.accept_suggestion(suggestion_id)
    assert result.applied
    assert router.profiles.get_profile("u1").preferred_worker("write") == "smollm3"
    assert router.pending_suggestions("u1") == []
    assert router.suggestion_stats("u1") == SuggestionStats(generated=1, accepted=1, applied=1)


async def test_unreadable_ledger_skips_performance_stage(tmp_path: Path) -> None:
    router = AdaptiveRouter(RouterConfig(data_dir=tmp_path), ledger=OfflineLedger())
    router.profiles.create_profile(UserProfile(user_id="u1"))
    profile = router.profiles.get_profile("u1")

    assert await router.performance_summary("write", MORNING) is None
    decision = await router.route_for_user("u1", "Write an essay about dogs", MORNING)
    reference = router.route("Write an essay about dogs", profile, MORNING, {})

    assert ("performance", "recovery") in [(e.stage, e.action) for e in decision.trail]
    assert not any(e.action == "recovery" for e in reference.trail)
    assert decision.worker_id == reference.worker_id
    assert decision.confidence == pytest.approx(reference.confidence - 0.05)


async def test_ledger_failure_leaves_decision_log_untouched(tmp_path: Path) -> None:
    router = AdaptiveRouter(RouterConfig(data_dir=tmp_path), ledger=OfflineLedger())
    router.profiles.create_profile(UserProfile(user_id="u1"))
    decision = await router.route_for_user("u1", "Write an essay about dogs", MORNING)

    with pytest.raises(UpstreamDataUnavailable):
        await router.record_outcome(decision.decision_id, True, latency_ms=500)
    assert router.decisions.get(decision.decision_id).outcome is None


async def test_unopened_ledger_rejects_outcome(tmp_path: Path) -> None:
    ledger = PerformanceLedger(tmp_path / "perf.db")
    router = AdaptiveRouter(RouterConfig(data_dir=tmp_path), ledger=ledger)
    router.profiles.create_profile(UserProfile(user_id="u1"))
    decision = await router.route_for_user("u1", "Write an essay about dogs", MORNING)

    with pytest.raises(UpstreamDataUnavailable):
        await router.record_outcome(decision.decision_id, False)
    assert router.decisions.get(decision.decision_id).outcome is None


async def test_second_outcome_skips_ledger(tmp_path: Path) -> None:
    async with PerformanceLedger(tmp_path / "perf.db") as ledger:
        router = AdaptiveRouter(RouterConfig(data_dir=tmp_path), ledger=ledger)
        router.profiles.create_profile(UserProfile(user_id="u1"))
        now = datetime.now()
        decision = await router.route_for_user("u1", "Write an essay about dogs", now)
        await router.record_outcome(decision.decision_id, True)

        with pytest.raises(ValueError):
            await router.record_outcome(decision.decision_id, False)

        window = TimeWindow.last(days=1, now=now + timedelta(minutes=1))
        summary = await ledger.get_summary("write", window)
        assert summary[decision.worker_id].sample_size == 1
