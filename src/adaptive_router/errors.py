"""Error kinds raised across the routing engine."""

from __future__ import annotations


class RouterError(Exception):
    """Base class for every routing engine error."""


class InvalidInput(RouterError):
    """Task text is empty or not text. Recovered by the classifier."""


class MissingProfile(RouterError):
    """No profile exists for the requested user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"no profile for user {user_id!r}")
        self.user_id = user_id


class UpstreamDataUnavailable(RouterError):
    """Performance summary or decision log could not be read."""


class ValidationFailure(RouterError):
    """A finished decision breaks the local-capable fallback invariant."""


class SuggestionStateError(RouterError):
    """Suggestion is not pending and cannot change state again."""


class SuggestionNotFound(RouterError):
    """No suggestion with the given id."""

    def __init__(self, suggestion_id: int) -> None:
        super().__init__(f"suggestion {suggestion_id} not found")
        self.suggestion_id = suggestion_id


class ProfileVersionConflict(RouterError):
    """Profile changed between read and write."""

    def __init__(self, user_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"profile {user_id!r} is at version {actual}, expected {expected}"
        )
        self.user_id = user_id
        self.expected = expected
        self.actual = actual


class DecisionNotFound(RouterError):
    """No routing decision with the given id."""

    def __init__(self, decision_id: str) -> None:
        super().__init__(f"decision {decision_id!r} not found")
        self.decision_id = decision_id
