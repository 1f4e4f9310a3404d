"""Override stages of the decision-fusion pipeline.

Each stage is a pure function ``(DecisionState) -> DecisionState``. A stage
either returns its input unchanged or returns a new state with one or more
trail entries appended. No stage performs I/O.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Final

from adaptive_router.errors import ValidationFailure
from adaptive_router.models import Level
from adaptive_router.routing.state import DecisionState, TrailEntry

Stage = Callable[[DecisionState], DecisionState]


def _registered(state: DecisionState, stage: str, worker: str) -> DecisionState | None:
    """Return a noted state if ``worker`` is unknown to the registry, else None."""
    if worker in state.inputs.registry:
        return None
    return state.note(stage, "suppressed", f"{worker} is not a registered worker")


# ═══════════════════════════════════════════════════════════════════════════
# BASELINE
# ═══════════════════════════════════════════════════════════════════════════


def baseline(state: DecisionState) -> DecisionState:
    """Fill the starting choice from the category → default worker rule."""
    inputs = state.inputs
    t = inputs.tuning
    category = inputs.category
    worker = t.category_workers.get(category)
    if worker is None or worker not in inputs.registry:
        worker = t.default_worker
        reason = f"no default worker for {category}; using {worker}"
    else:
        reason = f"default worker for {category}"

    confidence = (
        t.unknown_confidence if inputs.classification.is_unknown else t.baseline_confidence
    )
    entry = TrailEntry(stage="baseline", action="baseline", reason=reason, worker_after=worker)
    return replace(
        state, worker=worker, baseline_confidence=confidence, trail=state.trail + (entry,)
    )


# ═══════════════════════════════════════════════════════════════════════════
# TIME OF DAY
# ═══════════════════════════════════════════════════════════════════════════


def time_aware_override(state: DecisionState) -> DecisionState:
    """Switch to the current period's worker for this category."""
    inputs = state.inputs
    if not inputs.tuning.time_aware_routing:
        return state

    period = inputs.profile.time_profile.period_for(inputs.hour)
    if period is None:
        return state
    worker = period.workers.get(inputs.category)
    if worker is None or worker == state.worker:
        return state
    unknown = _registered(state, "time_aware", worker)
    if unknown is not None:
        return unknown

    peak = inputs.hour in inputs.profile.time_profile.peak_hours
    delta = inputs.tuning.peak_time_delta if peak else inputs.tuning.time_delta
    reason = f"{period.name} preference for {inputs.category}"
    if peak:
        reason += " (peak hour)"
    return state.switch("time_aware", worker, reason, delta)


# ═══════════════════════════════════════════════════════════════════════════
# COGNITIVE STATE
# ═══════════════════════════════════════════════════════════════════════════


def cognitive_override(state: DecisionState) -> DecisionState:
    """Adapt the choice to the user's current capacity and task alignment."""
    inputs = state.inputs
    t = inputs.tuning
    registry = inputs.registry
    cognitive = inputs.cognitive
    current = state.worker or ""

    if cognitive.alignment.score < t.alignment_threshold:
        worker_entry = registry.get(current)
        if worker_entry is not None and worker_entry.local_capable and worker_entry.tier == "fast":
            return state
        target = registry.fastest_local()
        if target is None or target == current:
            return state
        return state.switch(
            "cognitive",
            target,
            f"low task alignment ({cognitive.alignment.score:.2f}); prefer a fast local worker",
            t.low_alignment_delta,
        )

    if (
        cognitive.capacity.focus_window
        and inputs.classification.cognitive_requirements.requires_focus
    ):
        if registry.is_high_capability(current):
            return state
        preferred = inputs.profile.preferred_worker(inputs.category)
        if preferred is not None and registry.is_high_capability(preferred):
            target = preferred
        else:
            target = registry.most_capable(inputs.category)
        if target is None:
            return state
        return state.switch(
            "cognitive",
            target,
            "focus window for a focus-heavy task; high-capability worker permitted",
            t.focus_window_delta,
        )

    if cognitive.capacity.level == Level.LOW and not registry.is_local_capable(current):
        target = registry.fastest_local()
        if target is None:
            return state
        return state.switch(
            "cognitive",
            target,
            f"low capacity ({cognitive.capacity.score:.2f}); prefer a fast local worker",
            t.low_capacity_delta,
        )

    return state


# ═══════════════════════════════════════════════════════════════════════════
# HISTORICAL PERFORMANCE
# ═══════════════════════════════════════════════════════════════════════════


def performance_override(state: DecisionState) -> DecisionState:
    """Switch to a clearly better-performing worker when history supports it."""
    inputs = state.inputs
    t = inputs.tuning
    summary = inputs.performance
    if summary is None:
        return state.note(
            "performance",
            "recovery",
            "performance summary unavailable; stage skipped",
            -t.missing_data_penalty,
        )

    eligible = {
        worker: perf
        for worker, perf in summary.items()
        if perf.sample_size >= t.performance_min_samples and worker in inputs.registry
    }
    if not eligible:
        return state

    best_worker, best = min(
        eligible.items(), key=lambda item: (-item[1].score, -item[1].sample_size, item[0])
    )
    if best_worker == state.worker or best.score < t.performance_floor:
        return state

    current = eligible.get(state.worker or "")
    if current is not None and best.score - current.score <= t.performance_margin:
        return state

    data_confidence = min(best.sample_size / 10, 1.0)
    versus = f" vs {current.score:.2f}" if current is not None else ""
    return state.switch(
        "performance",
        best_worker,
        f"best historical score for {inputs.category}: {best.score:.2f}{versus} "
        f"over {best.sample_size} runs",
        t.performance_max_delta * data_confidence,
    )


# ═══════════════════════════════════════════════════════════════════════════
# DECLARED PREFERENCE
# ═══════════════════════════════════════════════════════════════════════════


def preference_override(state: DecisionState) -> DecisionState:
    """Apply the profile's declared per-category preference."""
    inputs = state.inputs
    preferred = inputs.profile.preferred_worker(inputs.category)
    if preferred is None or preferred == state.worker:
        return state
    unknown = _registered(state, "preference", preferred)
    if unknown is not None:
        return unknown

    uncertainty = inputs.classification.uncertainty_level
    safe = (
        inputs.registry.is_uncertainty_safe(preferred)
        or preferred in inputs.tuning.uncertainty_safe_workers
    )
    if uncertainty.is_high and not safe:
        return state.note(
            "preference",
            "suppressed",
            f"declared preference {preferred} skipped: {uncertainty} uncertainty "
            "and worker is not uncertainty-safe",
        )
    return state.switch(
        "preference",
        preferred,
        f"declared preference for {inputs.category}",
        inputs.tuning.preference_delta,
    )


# ═══════════════════════════════════════════════════════════════════════════
# PRIVACY
# ═══════════════════════════════════════════════════════════════════════════


def privacy_reasons(state: DecisionState) -> list[str]:
    inputs = state.inputs
    reasons = []
    if inputs.classification.privacy_sensitive:
        reasons.append("privacy-sensitive task")
    if inputs.profile.privacy_posture == "local_only":
        reasons.append("profile requires local-only processing")
    if inputs.tuning.local_first_routing and inputs.hour in inputs.tuning.local_only_hours:
        reasons.append(f"hour {inputs.hour} is inside the local-only window")
    return reasons


def privacy_override(state: DecisionState) -> DecisionState:
    """Terminal stage: force a local-capable worker when privacy requires it.

    Raises:
        ValidationFailure: if privacy applies but no local-capable worker exists
    """
    reasons = privacy_reasons(state)
    if not reasons:
        return state

    inputs = state.inputs
    registry = inputs.registry
    reason = "; ".join(reasons)
    floor_delta = max(0.0, inputs.tuning.privacy_confidence_floor - state.confidence)

    if registry.is_local_capable(state.worker or ""):
        enforced = state.note("privacy", "enforce", f"{reason}; worker already local", floor_delta)
    else:
        declared = inputs.profile.preferred_worker("sensitive")
        if declared is not None and registry.is_local_capable(declared):
            target = declared
        else:
            target = registry.best_local_for(inputs.category)
        if target is None:
            raise ValidationFailure(f"{reason}, but no local-capable worker is registered")
        enforced = state.switch("privacy", target, f"{reason}; forcing local worker", floor_delta)

    return replace(enforced, privacy_enforced=True)


DEFAULT_STAGES: Final[tuple[Stage, ...]] = (
    baseline,
    time_aware_override,
    cognitive_override,
    performance_override,
    preference_override,
    privacy_override,
)
