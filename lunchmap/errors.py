"""Error taxonomy for the search core."""
from __future__ import annotations

from typing import List, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import QueryOutcome


class LunchMapError(RuntimeError):
    pass


class ProviderUnavailableError(LunchMapError):
    """The places provider never became ready within the timeout."""


class AllQueriesFailedError(LunchMapError):
    def __init__(self, outcomes: Sequence["QueryOutcome"]) -> None:
        self.outcomes: List["QueryOutcome"] = list(outcomes)
        statuses = ", ".join(f"{o.keyword}={o.status.value}" for o in self.outcomes)
        super().__init__(f"All {len(self.outcomes)} keyword queries failed ({statuses})")


class GeolocationUnavailableError(LunchMapError):
    pass


class MarkerPoolError(LunchMapError):
    """Marker pool precondition violated (programming error)."""
