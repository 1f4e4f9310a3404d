"""Shared value objects: profiles, time windows, outcomes and performance."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Final

# ═══════════════════════════════════════════════════════════════════════════
# LEVELS
# ═══════════════════════════════════════════════════════════════════════════


class Level(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UncertaintyLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    def escalate(self) -> UncertaintyLevel:
        """One step more uncertain, saturating at very_high."""
        order = list(UncertaintyLevel)
        return order[min(order.index(self) + 1, len(order) - 1)]

    @property
    def is_high(self) -> bool:
        return self in (UncertaintyLevel.HIGH, UncertaintyLevel.VERY_HIGH)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# ═══════════════════════════════════════════════════════════════════════════
# TIME WINDOWS
# ═══════════════════════════════════════════════════════════════════════════

_WINDOW_RE = re.compile(r"^\s*(\d+)\s*([hdw])\s*$")
_WINDOW_UNITS: Final[dict[str, str]] = {"h": "hours", "d": "days", "w": "weeks"}


def parse_window(text: str) -> timedelta:
    """Parse a compact duration such as '30d', '2w' or '12h'."""
    match = _WINDOW_RE.match(text.lower())
    if not match:
        raise ValueError(f"window must look like '30d', '2w' or '12h', got {text!r}")
    amount, unit = match.groups()
    return timedelta(**{_WINDOW_UNITS[unit]: int(amount)})


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) over decision timestamps."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"window end {self.end} precedes start {self.start}")

    @classmethod
    def last(cls, days: float = 30, now: datetime | None = None) -> TimeWindow:
        end = now or datetime.now()
        return cls(start=end - timedelta(days=days), end=end)

    @classmethod
    def parse(cls, text: str, now: datetime | None = None) -> TimeWindow:
        end = now or datetime.now()
        return cls(start=end - parse_window(text), end=end)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400

    def describe(self) -> str:
        """Human-readable span, e.g. '2 weeks' or '3 days'."""
        days = self.days
        if days >= 14:
            weeks = round(days / 7)
            return f"{weeks} weeks"
        if days >= 1:
            whole = round(days)
            return f"{whole} day" if whole == 1 else f"{whole} days"
        hours = max(1, round(days * 24))
        return f"{hours} hour" if hours == 1 else f"{hours} hours"


# ═══════════════════════════════════════════════════════════════════════════
# TIME-OF-DAY PROFILE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PeriodPreference:
    """Workers preferred per category during one period of the day."""

    name: str
    hours: tuple[int, ...]
    workers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        bad = [h for h in self.hours if not 0 <= h <= 23]
        if bad:
            raise ValueError(f"period {self.name!r} has invalid hours {bad}")


@dataclass(frozen=True)
class TimeProfile:
    """Versioned time-of-day preference table plus energy buckets."""

    periods: tuple[PeriodPreference, ...]
    peak_hours: tuple[int, ...] = (9, 10, 11, 14, 15, 16)
    low_energy_hours: tuple[int, ...] = (13, 17, 18, 19)
    version: int = 1

    def period_for(self, hour: int) -> PeriodPreference | None:
        for period in self.periods:
            if hour in period.hours:
                return period
        return None

    def energy_at(self, hour: int) -> Level:
        if hour in self.peak_hours:
            return Level.HIGH
        if hour in self.low_energy_hours:
            return Level.LOW
        return Level.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        return {
            "periods": [
                {"name": p.name, "hours": list(p.hours), "workers": dict(p.workers)}
                for p in self.periods
            ],
            "peak_hours": list(self.peak_hours),
            "low_energy_hours": list(self.low_energy_hours),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TimeProfile:
        periods = tuple(
            PeriodPreference(
                name=p["name"],
                hours=tuple(int(h) for h in p.get("hours", ())),
                workers=dict(p.get("workers", {})),
            )
            for p in data.get("periods", ())
        )
        return cls(
            periods=periods,
            peak_hours=tuple(data.get("peak_hours", DEFAULT_TIME_PROFILE.peak_hours)),
            low_energy_hours=tuple(
                data.get("low_energy_hours", DEFAULT_TIME_PROFILE.low_energy_hours)
            ),
            version=int(data.get("version", 1)),
        )


DEFAULT_TIME_PROFILE: Final = TimeProfile(
    periods=(
        PeriodPreference(
            name="morning",
            hours=tuple(range(6, 12)),
            workers={
                "write": "gpt-4",
                "creative": "gpt-4",
                "code": "claude-3.5-sonnet",
                "debug": "claude-3.5-sonnet",
                "analyze": "claude-3.5-sonnet",
                "research": "perplexity",
                "summarize": "smollm3",
                "quick_query": "smollm3",
            },
        ),
        PeriodPreference(
            name="afternoon",
            hours=tuple(range(12, 18)),
            workers={
                "write": "claude-3.5-sonnet",
                "creative": "claude-3.5-sonnet",
                "code": "gpt-4",
                "debug": "gpt-4",
                "analyze": "gpt-4",
                "research": "perplexity",
                "summarize": "smollm3",
                "quick_query": "smollm3",
            },
        ),
        PeriodPreference(
            name="evening",
            hours=tuple(range(18, 24)),
            workers={
                "write": "gpt-4",
                "creative": "gpt-4",
                "code": "smollm3",
                "debug": "smollm3",
                "analyze": "smollm3",
                "research": "smollm3",
                "summarize": "smollm3",
                "quick_query": "smollm3",
            },
        ),
        PeriodPreference(
            name="night",
            hours=tuple(range(0, 6)),
            workers={
                "write": "smollm3",
                "creative": "smollm3",
                "code": "smollm3",
                "debug": "smollm3",
                "research": "smollm3",
                "quick_query": "smollm3",
            },
        ),
    ),
)


# ═══════════════════════════════════════════════════════════════════════════
# USER PROFILE
# ═══════════════════════════════════════════════════════════════════════════

PRIVACY_POSTURES: Final = ("local_only", "local_first", "balanced")

ATTENTION_VARIABILITY_TAGS: Final = frozenset({"attention_variability", "adhd", "adhd_aware"})
CLARITY_FIRST_TAG: Final = "clarity_first"

DEFAULT_PREFERENCES: Final[dict[str, str]] = {
    "write": "gpt-4",
    "summarize": "claude-3.5-sonnet",
    "debug": "gpt-4",
    "route": "smollm3",
    "research": "perplexity",
    "sensitive": "smollm3",
}


@dataclass(frozen=True)
class UserProfile:
    """Per-user routing preferences and cognitive style.

    ``version`` is the optimistic concurrency token; the profile store bumps
    it on every write.
    """

    user_id: str
    preferences: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_PREFERENCES))
    cognitive_tags: tuple[str, ...] = ()
    privacy_posture: str = "local_first"
    time_profile: TimeProfile = DEFAULT_TIME_PROFILE
    switching_cost: Level = Level.MEDIUM
    category_fallbacks: Mapping[str, str] = field(default_factory=dict)
    fallback_worker: str = "smollm3"
    version: int = 1

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("user_id must not be empty")
        if self.privacy_posture not in PRIVACY_POSTURES:
            raise ValueError(
                f"privacy_posture must be one of {PRIVACY_POSTURES}, got {self.privacy_posture!r}"
            )
        if self.version < 1:
            raise ValueError(f"version must be >= 1, got {self.version}")

    @property
    def attention_variability(self) -> bool:
        return any(tag in ATTENTION_VARIABILITY_TAGS for tag in self.cognitive_tags)

    @property
    def clarity_first(self) -> bool:
        return CLARITY_FIRST_TAG in self.cognitive_tags

    def preferred_worker(self, category: str) -> str | None:
        return self.preferences.get(category)

    def get_setting(self, path: str) -> Any:
        """Read a dotted setting path such as ``preferences.write``."""
        head, _, key = path.partition(".")
        if head in ("preferences", "category_fallbacks"):
            if not key:
                raise ValueError(f"setting path {path!r} needs a category")
            return getattr(self, head).get(key)
        if head in ("privacy_posture", "switching_cost", "fallback_worker") and not key:
            return getattr(self, head)
        raise ValueError(f"unknown setting path {path!r}")

    def with_setting(self, path: str, value: Any) -> UserProfile:
        """Return a copy with one dotted setting replaced."""
        head, _, key = path.partition(".")
        if head in ("preferences", "category_fallbacks"):
            if not key:
                raise ValueError(f"setting path {path!r} needs a category")
            updated = dict(getattr(self, head))
            updated[key] = value
            return replace(self, **{head: updated})
        if head == "switching_cost" and not key:
            return replace(self, switching_cost=Level(value))
        if head in ("privacy_posture", "fallback_worker") and not key:
            return replace(self, **{head: value})
        raise ValueError(f"unknown setting path {path!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "preferences": dict(self.preferences),
            "cognitive_tags": list(self.cognitive_tags),
            "privacy_posture": self.privacy_posture,
            "time_profile": self.time_profile.to_dict(),
            "switching_cost": str(self.switching_cost),
            "category_fallbacks": dict(self.category_fallbacks),
            "fallback_worker": self.fallback_worker,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserProfile:
        time_data = data.get("time_profile")
        return cls(
            user_id=data["user_id"],
            preferences=dict(data.get("preferences", DEFAULT_PREFERENCES)),
            cognitive_tags=tuple(data.get("cognitive_tags", ())),
            privacy_posture=data.get("privacy_posture", "local_first"),
            time_profile=TimeProfile.from_dict(time_data) if time_data else DEFAULT_TIME_PROFILE,
            switching_cost=Level(data.get("switching_cost", "medium")),
            category_fallbacks=dict(data.get("category_fallbacks", {})),
            fallback_worker=data.get("fallback_worker", "smollm3"),
            version=int(data.get("version", 1)),
        )


# ═══════════════════════════════════════════════════════════════════════════
# OUTCOMES AND PERFORMANCE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Outcome:
    """Result of executing a routed task, reported after the fact."""

    success: bool
    latency_ms: float | None = None
    rating: int | None = None
    recorded_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.latency_ms is not None and self.latency_ms < 0:
            raise ValueError(f"latency_ms must be >= 0, got {self.latency_ms}")
        if self.rating is not None and not 1 <= self.rating <= 5:
            raise ValueError(f"rating must be in [1, 5], got {self.rating}")


# Composite score weights
SUCCESS_WEIGHT = 0.5
SPEED_WEIGHT = 0.25
RATING_WEIGHT = 0.25
LATENCY_CEILING_MS = 10_000.0


@dataclass(frozen=True)
class WorkerPerformance:
    """Aggregated outcome statistics for one worker in one category."""

    sample_size: int
    success_rate: float
    avg_latency_ms: float | None = None
    avg_rating: float | None = None

    def __post_init__(self) -> None:
        if self.sample_size < 0:
            raise ValueError(f"sample_size must be >= 0, got {self.sample_size}")
        if not 0.0 <= self.success_rate <= 1.0:
            raise ValueError(f"success_rate must be in [0.0, 1.0], got {self.success_rate}")

    @property
    def score(self) -> float:
        """Composite in [0, 1]: success 0.5, speed 0.25, rating 0.25.

        Missing latency counts as full speed credit, missing rating as neutral.
        """
        if self.avg_latency_ms is None:
            speed = 1.0
        else:
            speed = clamp(1.0 - self.avg_latency_ms / LATENCY_CEILING_MS)
        rating = 0.5 if self.avg_rating is None else clamp(self.avg_rating / 5.0)
        return round(
            self.success_rate * SUCCESS_WEIGHT + speed * SPEED_WEIGHT + rating * RATING_WEIGHT,
            4,
        )


PerformanceSummary = Mapping[str, WorkerPerformance]
