"""Collaborator interfaces the engine consumes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from adaptive_router.models import PerformanceSummary, TimeWindow, UserProfile
from adaptive_router.routing import RoutingDecision


class ProfileSource(Protocol):
    def get_profile(self, user_id: str) -> UserProfile: ...

    def update_profile_field(
        self, user_id: str, path: str, value: Any, expected_version: int | None = None
    ) -> UserProfile: ...


class PerformanceSource(Protocol):
    async def get_summary(self, category: str, window: TimeWindow) -> PerformanceSummary: ...

    async def record_outcome(
        self,
        worker_id: str,
        category: str,
        success: bool,
        latency_ms: float | None = None,
        rating: int | None = None,
        decision_id: str | None = None,
        recorded_at: datetime | None = None,
    ) -> None: ...


class DecisionSource(Protocol):
    def append(self, decision: RoutingDecision) -> str: ...

    def query(
        self, window: TimeWindow, filters: Mapping[str, str] | None = None
    ) -> list[RoutingDecision]: ...
