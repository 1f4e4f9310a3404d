"""Decision-fusion pipeline: ordered stages, then fallback chain and validation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from adaptive_router.errors import ValidationFailure
from adaptive_router.logging_config import get_logger
from adaptive_router.routing.fallback import FallbackChainGenerator
from adaptive_router.routing.stages import DEFAULT_STAGES, Stage
from adaptive_router.routing.state import DecisionInputs, DecisionState

log = get_logger(__name__)


@dataclass(frozen=True)
class FusionResult:
    """Final state of a decision plus its validated fallback chain."""

    state: DecisionState
    fallback_chain: tuple[str, ...]

    @property
    def worker(self) -> str:
        assert self.state.worker is not None
        return self.state.worker

    @property
    def confidence(self) -> float:
        return self.state.confidence


class DecisionPipeline:
    """Run stages in order over one set of inputs.

    Pure apart from logging: the same inputs always produce the same result.
    """

    def __init__(
        self,
        stages: Sequence[Stage] = DEFAULT_STAGES,
        fallback: FallbackChainGenerator | None = None,
    ) -> None:
        if not stages:
            raise ValueError("pipeline needs at least one stage")
        self.stages = tuple(stages)
        self.fallback = fallback or FallbackChainGenerator()

    def run(self, inputs: DecisionInputs) -> FusionResult:
        """Fuse all signals into one worker choice.

        Raises:
            ValidationFailure: if a privacy-forced decision cannot stay local
        """
        state = DecisionState(inputs=inputs)
        for stage in self.stages:
            state = stage(state)
        if state.worker is None:
            raise ValidationFailure("no stage selected a worker")

        chain = self.fallback.generate(state)
        try:
            self.fallback.validate(state, chain)
        except ValidationFailure:
            log.error(
                "decision_blocked",
                category=inputs.category,
                worker=state.worker,
                fallback_chain=list(chain),
            )
            raise

        for entry in state.trail:
            if entry.action == "recovery":
                log.warning("stage_recovered", stage=entry.stage, reason=entry.reason)
        return FusionResult(state=state, fallback_chain=chain)
