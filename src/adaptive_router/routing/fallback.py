"""Fallback chain generation and the local-capable invariant."""

from __future__ import annotations

from collections.abc import Iterable

from adaptive_router.errors import ValidationFailure
from adaptive_router.registry import WorkerRegistry
from adaptive_router.routing.state import DecisionState


def _dedupe(workers: Iterable[str | None], exclude: str | None) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for worker in workers:
        if worker is None or worker == exclude or worker in seen:
            continue
        seen.add(worker)
        ordered.append(worker)
    return ordered


class FallbackChainGenerator:
    """Ordered alternatives to the chosen worker.

    Sources, in order: the current period's table, the next-best performers,
    a forced local worker (attention-variability accommodation or privacy),
    then the profile's declared category fallback. The chain always ends in a
    local-capable worker when the registry has one to spare.

    The primary never appears in its own chain. When a privacy-forced primary
    is the only local-capable worker, the chain is empty: no cloud worker may
    follow it, and the primary itself already satisfies the local invariant.
    """

    def generate(self, state: DecisionState) -> tuple[str, ...]:
        inputs = state.inputs
        registry = inputs.registry
        profile = inputs.profile
        primary = state.worker
        candidates: list[str | None] = []

        period = profile.time_profile.period_for(inputs.hour)
        if period is not None:
            candidates.extend(period.workers.values())

        performance = inputs.performance or {}
        if performance:
            ranked = sorted(
                (w for w, p in performance.items() if p.sample_size > 0),
                key=lambda w: (-performance[w].score, w),
            )
            candidates.extend(ranked)

        if profile.attention_variability or state.privacy_enforced:
            candidates.append(registry.fastest_local(exclude=[primary] if primary else []))

        candidates.append(profile.category_fallbacks.get(inputs.category))
        candidates.append(profile.fallback_worker)

        chain = [w for w in _dedupe(candidates, primary) if w in registry]
        if state.privacy_enforced:
            chain = [w for w in chain if registry.is_local_capable(w)]
            if not chain:
                chain = [w for w in registry.local_workers() if w != primary]

        limit = inputs.tuning.max_fallbacks
        chain = chain[:limit]
        return tuple(self._end_local(chain, primary, registry, limit))

    @staticmethod
    def _end_local(
        chain: list[str], primary: str | None, registry: WorkerRegistry, limit: int
    ) -> list[str]:
        if chain and registry.is_local_capable(chain[-1]):
            return chain
        local_in_chain = [w for w in chain if registry.is_local_capable(w)]
        if local_in_chain:
            last_local = local_in_chain[-1]
            return [w for w in chain if w != last_local] + [last_local]
        extra = registry.fastest_local(exclude=[*chain, *([primary] if primary else [])])
        if extra is None:
            return chain
        return chain[: limit - 1] + [extra]

    @staticmethod
    def validate(state: DecisionState, chain: tuple[str, ...]) -> None:
        """Reject a chain that leaks a privacy-forced task to the cloud.

        Raises:
            ValidationFailure: if privacy was enforced and any entry is not local
        """
        if not state.privacy_enforced:
            return
        registry = state.inputs.registry
        if state.worker is None or not registry.is_local_capable(state.worker):
            raise ValidationFailure(f"privacy enforced but primary {state.worker} is not local")
        leaked = [w for w in chain if not registry.is_local_capable(w)]
        if leaked:
            raise ValidationFailure(
                f"privacy enforced but fallback chain contains non-local workers: {leaked}"
            )
