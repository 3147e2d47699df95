"""Business-rule errors raised by the ranking and promotion core."""

from __future__ import annotations

from dataclasses import dataclass


class RankForgeError(Exception):
    """Base class for errors the caller is expected to surface verbatim."""


class NotFoundError(RankForgeError):
    """A template or promotion request does not exist."""


class PermissionDeniedError(RankForgeError):
    """The acting identity lacks the admin role."""


class EligibilityError(RankForgeError):
    """A template does not meet the promotion criteria.

    ``criteria`` lists every unmet criterion, not just the first.
    """

    def __init__(self, criteria: list[str]) -> None:
        self.criteria = list(criteria)
        super().__init__(
            "Template does not meet the promotion criteria: " + "; ".join(self.criteria)
        )


class StateTransitionError(RankForgeError):
    """The requested action is not valid for the request's current status."""

    def __init__(self, current: str, action: str) -> None:
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} a promotion request in status '{current}'")


class DuplicateRequestError(RankForgeError):
    """An active promotion request already exists for the template."""


@dataclass(frozen=True)
class AggregationError:
    """A per-template failure during batch recomputation.

    Returned in the batch summary, never raised to the batch caller.
    """

    template_id: str
    template_type: str
    message: str
