"""Worker registry: which workers exist and where they can run."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Final

TIERS: Final = ("fast", "balanced", "capable")


@dataclass(frozen=True)
class WorkerSpec:
    """One selectable worker."""

    worker_id: str
    local_capable: bool = False
    tier: str = "balanced"
    tags: tuple[str, ...] = ()
    uncertainty_safe: bool = False

    def __post_init__(self) -> None:
        if not self.worker_id:
            raise ValueError("worker_id must not be empty")
        if self.tier not in TIERS:
            raise ValueError(f"tier must be one of {TIERS}, got {self.tier!r}")


DEFAULT_WORKERS: Final[tuple[WorkerSpec, ...]] = (
    WorkerSpec("smollm3", local_capable=True, tier="fast",
               tags=("quick_query", "route", "summarize", "sensitive"), uncertainty_safe=True),
    WorkerSpec("smollm3-8b", local_capable=True, tier="balanced",
               tags=("write", "explain", "sensitive")),
    WorkerSpec("codellama", local_capable=True, tier="balanced", tags=("code", "debug")),
    WorkerSpec("claude-3.5-sonnet", tier="capable",
               tags=("code", "debug", "analyze", "write", "summarize"), uncertainty_safe=True),
    WorkerSpec("gpt-4", tier="capable",
               tags=("write", "creative", "debug", "explain"), uncertainty_safe=True),
    WorkerSpec("perplexity", tier="balanced", tags=("research",)),
)


class WorkerRegistry:
    """Lookup over registered workers, in registration order.

    Unknown worker ids are treated as cloud-only and not uncertainty-safe.
    """

    def __init__(self, workers: Iterable[WorkerSpec] = DEFAULT_WORKERS) -> None:
        self._workers: dict[str, WorkerSpec] = {}
        for entry in workers:
            if entry.worker_id in self._workers:
                raise ValueError(f"duplicate worker {entry.worker_id!r}")
            self._workers[entry.worker_id] = entry

    def __contains__(self, worker_id: object) -> bool:
        return worker_id in self._workers

    def __iter__(self) -> Iterator[WorkerSpec]:
        return iter(self._workers.values())

    def __len__(self) -> int:
        return len(self._workers)

    def get(self, worker_id: str) -> WorkerSpec | None:
        return self._workers.get(worker_id)

    def is_local_capable(self, worker_id: str) -> bool:
        entry = self._workers.get(worker_id)
        return entry is not None and entry.local_capable

    def is_uncertainty_safe(self, worker_id: str) -> bool:
        entry = self._workers.get(worker_id)
        return entry is not None and entry.uncertainty_safe

    def is_high_capability(self, worker_id: str) -> bool:
        entry = self._workers.get(worker_id)
        return entry is not None and entry.tier == "capable"

    def local_workers(self) -> list[str]:
        return [w.worker_id for w in self._workers.values() if w.local_capable]

    def fastest_local(self, exclude: Iterable[str] = ()) -> str | None:
        """Fast-tier local worker first, then any other local worker."""
        skip = set(exclude)
        candidates = [
            w for w in self._workers.values() if w.local_capable and w.worker_id not in skip
        ]
        for entry in candidates:
            if entry.tier == "fast":
                return entry.worker_id
        return candidates[0].worker_id if candidates else None

    def best_local_for(self, category: str, exclude: Iterable[str] = ()) -> str | None:
        """Local worker tagged for the category, else the fastest local one."""
        skip = set(exclude)
        for entry in self._workers.values():
            if entry.local_capable and category in entry.tags and entry.worker_id not in skip:
                return entry.worker_id
        return self.fastest_local(exclude=skip)

    def most_capable(self, category: str | None = None) -> str | None:
        """Capable-tier worker, preferring one tagged for the category."""
        capable = [w for w in self._workers.values() if w.tier == "capable"]
        if category is not None:
            for entry in capable:
                if category in entry.tags:
                    return entry.worker_id
        return capable[0].worker_id if capable else None
