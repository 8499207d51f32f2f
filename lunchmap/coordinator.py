"""Search orchestration: keywords -> aggregation -> distances -> radius policy -> markers."""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple

from . import config
from .aggregator import ResultAggregator
from .errors import AllQueriesFailedError, LunchMapError, ProviderUnavailableError
from .geo import Coordinate
from .geolocation import Locator, resolve_origin
from .keywords import build_keywords
from .markers import MarkerPool
from .models import PlaceRecord
from .places_client import PlacesProvider
from .radius import select
from .readiness import ProviderReadyGate
from .surface import MapSurface

logger = logging.getLogger(__name__)

ORIGIN_MARKER_KEY = "origin"
NO_RESULTS_IN_RANGE = "no_results_in_range"


class SearchState(enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    AGGREGATING = "aggregating"
    FILTERING = "filtering"
    RENDERING = "rendering"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class SearchSnapshot:
    state: SearchState = SearchState.IDLE
    generation: int = 0
    menu: Optional[str] = None
    origin: Optional[Coordinate] = None
    keywords: Tuple[str, ...] = ()
    selected: Tuple[PlaceRecord, ...] = ()
    effective_radius_m: float = 0.0
    highlighted: Optional[PlaceRecord] = None
    failed_keywords: Tuple[str, ...] = ()
    error: Optional[LunchMapError] = None
    notice: Optional[str] = None


def marker_key(place_id: str) -> str:
    return f"place-{place_id}"


class GeoSearchCoordinator:
    """Drives one active search at a time onto a map surface.

    Every start_search() bumps the search generation. Older searches keep
    running to completion but only the newest generation may publish state
    or touch the marker pool.
    """

    def __init__(
        self,
        provider: PlacesProvider,
        surface: MapSurface,
        marker_pool: Optional[MarkerPool] = None,
        ready_gate: Optional[ProviderReadyGate] = None,
        aggregator: Optional[ResultAggregator] = None,
        ladder: Optional[Sequence[int]] = None,
        min_count: Optional[int] = None,
        keyword_strategy: Optional[str] = None,
        on_place_selected: Optional[Callable[[PlaceRecord], None]] = None,
    ) -> None:
        self.provider = provider
        self.surface = surface
        self.marker_pool = marker_pool or MarkerPool(config.MARKER_POOL_INITIAL_SIZE)
        self.marker_pool.set_surface(surface)
        self.ready_gate = ready_gate or ProviderReadyGate(provider.is_ready)
        self.aggregator = aggregator or ResultAggregator(provider)
        self.ladder = config.validate_ladder(list(ladder)) if ladder is not None else None
        if min_count is not None and int(min_count) <= 0:
            raise ValueError("min_count must be positive")
        self.min_count = min_count
        self.keyword_strategy = keyword_strategy
        self.on_place_selected = on_place_selected

        self._generation = 0
        self._snapshot = SearchSnapshot()
        self._listeners: List[Callable[[SearchSnapshot], None]] = []
        self._tasks: Set[asyncio.Task] = set()

    # --- outward-facing API ---

    @property
    def snapshot(self) -> SearchSnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Callable[[SearchSnapshot], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start_search(self, origin: Coordinate, menu: str) -> asyncio.Task:
        """Start a search and return its task; awaiting it is optional.

        The task resolves to the final snapshot, or None if a newer search
        superseded it.
        """
        keywords = build_keywords(menu, self.keyword_strategy)
        loop = asyncio.get_running_loop()

        self._generation += 1
        generation = self._generation
        self._publish(
            SearchSnapshot(
                state=SearchState.SEARCHING,
                generation=generation,
                menu=menu,
                origin=origin,
                keywords=tuple(keywords),
            )
        )
        logger.info("Search %s started: %r at %.5f,%.5f", generation, menu, origin.latitude, origin.longitude)

        task = loop.create_task(self._run(generation, origin, keywords))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def search_from_location(self, menu: str, locator: Optional[Locator]) -> Optional[SearchSnapshot]:
        origin = await resolve_origin(locator)
        return await self.start_search(origin, menu)

    def select_place(self, place_id: str) -> Optional[PlaceRecord]:
        record = next((r for r in self._snapshot.selected if r.id == place_id), None)
        if record is None:
            logger.warning("select_place: %s is not in the current results", place_id)
            return None
        self.surface.set_center(record.coordinate, config.MAP_LEVEL_PLACE)
        self._publish(replace(self._snapshot, highlighted=record))
        return record

    def close_search(self) -> None:
        self._generation += 1
        self.marker_pool.release_all()
        self._publish(SearchSnapshot(state=SearchState.IDLE, generation=self._generation))

    # --- search pipeline ---

    async def _run(self, generation: int, origin: Coordinate, keywords: List[str]) -> Optional[SearchSnapshot]:
        ladder = self.ladder or config.validate_ladder(config.RADIUS_LADDER_M)
        min_count = self.min_count if self.min_count is not None else config.MIN_RESULT_COUNT
        try:
            await self.ready_gate.wait()
            result_set = await self.aggregator.search(
                origin,
                keywords,
                ladder[-1],
                is_current=lambda: self._is_current(generation),
            )
        except (ProviderUnavailableError, AllQueriesFailedError) as exc:
            return self._fail(generation, exc)

        if not self._is_current(generation):
            logger.debug("Search %s superseded by %s; results discarded", generation, self._generation)
            return None
        failed_keywords = tuple(o.keyword for o in result_set.failures)
        self._transition(generation, SearchState.AGGREGATING, failed_keywords=failed_keywords)

        annotated = [record.with_distance(origin) for record in result_set.records()]
        self._transition(generation, SearchState.FILTERING)

        selection = select(annotated, ladder, min_count)
        self._transition(generation, SearchState.RENDERING)

        self._render(generation, origin, selection.selected)
        notice = None if selection.selected else NO_RESULTS_IN_RANGE
        final = self._transition(
            generation,
            SearchState.DONE,
            selected=selection.selected,
            effective_radius_m=selection.effective_radius_m,
            highlighted=selection.selected[0] if selection.selected else None,
            notice=notice,
        )
        logger.info(
            "Search %s done: %s places within %.0fm",
            generation,
            len(selection.selected),
            selection.effective_radius_m,
        )
        return final

    def _fail(self, generation: int, exc: LunchMapError) -> Optional[SearchSnapshot]:
        if not self._is_current(generation):
            logger.debug("Search %s superseded; ignoring failure: %s", generation, exc)
            return None
        logger.error("Search %s failed: %s", generation, exc)
        self.marker_pool.release_all()
        failed_keywords: Tuple[str, ...] = ()
        if isinstance(exc, AllQueriesFailedError):
            failed_keywords = tuple(o.keyword for o in exc.outcomes)
        return self._transition(
            generation,
            SearchState.ERROR,
            selected=(),
            effective_radius_m=0.0,
            highlighted=None,
            failed_keywords=failed_keywords,
            error=exc,
        )

    def _render(self, generation: int, origin: Coordinate, selected: Sequence[PlaceRecord]) -> None:
        pool = self.marker_pool
        pool.release_all()
        pool.acquire(ORIGIN_MARKER_KEY, origin, title="current location")
        for record in selected:
            key = marker_key(record.id)
            pool.acquire(key, record.coordinate, title=record.name)
            pool.on_click(key, lambda _key, place_id=record.id: self._on_marker_click(generation, place_id))

        if selected:
            self.surface.set_center(selected[0].coordinate, config.MAP_LEVEL_PLACE)
        else:
            self.surface.set_center(origin, config.MAP_LEVEL_SEARCH)
        pool.optimize(config.MARKER_POOL_MAX_AVAILABLE)

    def _on_marker_click(self, generation: int, place_id: str) -> None:
        if not self._is_current(generation):
            return
        record = self.select_place(place_id)
        if record is not None and self.on_place_selected is not None:
            self.on_place_selected(record)

    # --- state plumbing ---

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _transition(self, generation: int, state: SearchState, **changes: Any) -> Optional[SearchSnapshot]:
        if not self._is_current(generation):
            return None
        snapshot = replace(self._snapshot, state=state, **changes)
        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: SearchSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Search listener failed on %s", snapshot.state.value)
