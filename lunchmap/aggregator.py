"""Fan-out keyword searches and merge their results by place id."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

from . import config
from .errors import AllQueriesFailedError
from .geo import Coordinate
from .models import AggregatedResultSet, ProviderStatus, QueryOutcome, SearchQuery
from .places_client import PlacesProvider, parse_places

logger = logging.getLogger(__name__)


class ResultAggregator:
    def __init__(self, provider: PlacesProvider, query_timeout_seconds: Optional[float] = None) -> None:
        self.provider = provider
        self.query_timeout_seconds = query_timeout_seconds

    async def search(
        self,
        origin: Coordinate,
        keywords: Sequence[str],
        radius_m: int,
        is_current: Optional[Callable[[], bool]] = None,
    ) -> AggregatedResultSet:
        """Run one query per keyword concurrently and wait for all of them.

        Failed queries contribute nothing; if every query fails,
        AllQueriesFailedError is raised. Records are merged first-seen-wins
        as each query resolves, unless ``is_current`` says the search has
        been superseded.
        """
        queries = [SearchQuery(k, origin, int(radius_m)) for k in dict.fromkeys(keywords)]
        if not queries:
            raise ValueError("At least one keyword is required")

        result_set = AggregatedResultSet()

        async def run_and_merge(query: SearchQuery) -> QueryOutcome:
            outcome = await self.run_query(query)
            if outcome.failed:
                logger.warning(
                    "Keyword query %r failed (%s): %s",
                    query.keyword,
                    outcome.status.value,
                    outcome.error or "no detail",
                )
            elif is_current is not None and not is_current():
                logger.debug("Dropping %s records for %r from a superseded search", len(outcome.records), query.keyword)
            else:
                added = result_set.merge(outcome.records, keyword=query.keyword)
                logger.debug("Query %r: %s records, %s new", query.keyword, len(outcome.records), added)
            result_set.outcomes.append(outcome)
            return outcome

        outcomes: List[QueryOutcome] = await asyncio.gather(*(run_and_merge(q) for q in queries))

        if all(o.failed for o in outcomes):
            raise AllQueriesFailedError(outcomes)
        logger.info(
            "Aggregated %s unique places from %s queries (%s failed)",
            len(result_set),
            len(outcomes),
            len(result_set.failures),
        )
        return result_set

    async def run_query(self, query: SearchQuery) -> QueryOutcome:
        loop = asyncio.get_running_loop()
        settled: asyncio.Future = loop.create_future()

        def settle(results: Any, status: Any) -> None:
            if not settled.done():
                settled.set_result((results, status))

        def callback(results: Any, status: Any) -> None:
            loop.call_soon_threadsafe(settle, results, status)

        async def dispatch() -> Any:
            await asyncio.to_thread(self.provider.keyword_search, query.keyword, callback, query.to_options())
            return await settled

        # The timeout covers the blocking provider call as well as the callback.
        timeout = config.QUERY_TIMEOUT_SECONDS if self.query_timeout_seconds is None else self.query_timeout_seconds
        try:
            results, raw_status = await asyncio.wait_for(dispatch(), timeout=timeout)
        except asyncio.TimeoutError:
            return QueryOutcome(query.keyword, ProviderStatus.UNKNOWN, error=f"timed out after {timeout:.1f}s")
        except Exception as exc:
            return QueryOutcome(query.keyword, ProviderStatus.UNKNOWN, error=f"{type(exc).__name__}: {exc}")

        status = ProviderStatus.from_raw(raw_status)
        if status is ProviderStatus.OK:
            return QueryOutcome(query.keyword, status, records=tuple(parse_places(results or [])))
        return QueryOutcome(query.keyword, status)
