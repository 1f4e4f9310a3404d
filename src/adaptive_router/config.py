"""Router configuration loaded from TOML with defaults for every key.

Example ``config.toml``::

    [routing]
    time_aware_routing = true
    local_first_routing = true
    local_only_hours = [22, 23, 0, 1, 2, 3, 4, 5]

    [drift]
    min_sample_size = 5
    significance_threshold = 0.3

    [suggestions]
    confidence_floor = 0.75

    [workers.mistral-7b]
    local_capable = true
    tier = "balanced"
    tags = ["write"]
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from adaptive_router.learning import DriftTuning, SuggestionTuning
from adaptive_router.registry import DEFAULT_WORKERS, WorkerRegistry, WorkerSpec
from adaptive_router.routing import PipelineTuning
from adaptive_router.storage.database import DEFAULT_DATA_DIR

CONFIG_ENV = "ADAPTIVE_ROUTER_CONFIG"


@dataclass(frozen=True)
class RouterConfig:
    """Recognised options. Immutable once loaded."""

    time_aware_routing: bool = True
    local_first_routing: bool = True
    local_only_hours: tuple[int, ...] = (22, 23, 0, 1, 2, 3, 4, 5)
    min_drift_sample_size: int = 5
    drift_significance_threshold: float = 0.3
    drift_confidence_floor: float = 0.7
    suggestion_confidence_floor: float = 0.75
    suggestion_min_impact: float = 0.2
    suggestion_min_sample_size: int = 8
    performance_window_days: int = 30
    drift_window_days: int = 30
    workers: tuple[WorkerSpec, ...] = DEFAULT_WORKERS
    data_dir: Path = DEFAULT_DATA_DIR

    def __post_init__(self) -> None:
        for name in (
            "drift_significance_threshold",
            "drift_confidence_floor",
            "suggestion_confidence_floor",
            "suggestion_min_impact",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
        for name in (
            "min_drift_sample_size",
            "suggestion_min_sample_size",
            "performance_window_days",
            "drift_window_days",
        ):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
        bad_hours = [h for h in self.local_only_hours if not 0 <= h <= 23]
        if bad_hours:
            raise ValueError(f"local_only_hours has invalid hours {bad_hours}")

    def pipeline_tuning(self) -> PipelineTuning:
        return PipelineTuning(
            time_aware_routing=self.time_aware_routing,
            local_first_routing=self.local_first_routing,
            local_only_hours=self.local_only_hours,
        )

    def drift_tuning(self) -> DriftTuning:
        return DriftTuning(
            min_sample_size=self.min_drift_sample_size,
            significance_threshold=self.drift_significance_threshold,
            confidence_floor=self.drift_confidence_floor,
        )

    def suggestion_tuning(self) -> SuggestionTuning:
        return SuggestionTuning(
            confidence_floor=self.suggestion_confidence_floor,
            min_impact=self.suggestion_min_impact,
            min_sample_size=self.suggestion_min_sample_size,
        )

    def registry(self) -> WorkerRegistry:
        return WorkerRegistry(self.workers)


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env)
    return DEFAULT_DATA_DIR / "config.toml"


def _workers(table: dict[str, Any]) -> tuple[WorkerSpec, ...]:
    merged = {w.worker_id: w for w in DEFAULT_WORKERS}
    for worker_id, entry in table.items():
        merged[worker_id] = WorkerSpec(
            worker_id=worker_id,
            local_capable=bool(entry.get("local_capable", False)),
            tier=entry.get("tier", "balanced"),
            tags=tuple(entry.get("tags", ())),
            uncertainty_safe=bool(entry.get("uncertainty_safe", False)),
        )
    return tuple(merged.values())


def load_config(path: Path | None = None) -> RouterConfig:
    """Load configuration from TOML, falling back to defaults.

    A missing file yields the defaults; a malformed one raises.

    Args:
        path: Config file; defaults to $ADAPTIVE_ROUTER_CONFIG or
            ~/.adaptive-router/config.toml

    Returns:
        RouterConfig
    """
    path = path or default_config_path()
    if not path.exists():
        return RouterConfig()

    with path.open("rb") as f:
        data = tomllib.load(f)

    routing = data.get("routing", {})
    drift = data.get("drift", {})
    suggestions = data.get("suggestions", {})
    defaults = RouterConfig()
    return RouterConfig(
        time_aware_routing=bool(routing.get("time_aware_routing", defaults.time_aware_routing)),
        local_first_routing=bool(
            routing.get("local_first_routing", defaults.local_first_routing)
        ),
        local_only_hours=tuple(routing.get("local_only_hours", defaults.local_only_hours)),
        performance_window_days=int(
            routing.get("performance_window_days", defaults.performance_window_days)
        ),
        min_drift_sample_size=int(drift.get("min_sample_size", defaults.min_drift_sample_size)),
        drift_significance_threshold=float(
            drift.get("significance_threshold", defaults.drift_significance_threshold)
        ),
        drift_confidence_floor=float(
            drift.get("confidence_floor", defaults.drift_confidence_floor)
        ),
        drift_window_days=int(drift.get("window_days", defaults.drift_window_days)),
        suggestion_confidence_floor=float(
            suggestions.get("confidence_floor", defaults.suggestion_confidence_floor)
        ),
        suggestion_min_impact=float(
            suggestions.get("min_impact", defaults.suggestion_min_impact)
        ),
        suggestion_min_sample_size=int(
            suggestions.get("min_sample_size", defaults.suggestion_min_sample_size)
        ),
        workers=_workers(data.get("workers", {})),
        data_dir=Path(data.get("data_dir", defaults.data_dir)).expanduser(),
    )
