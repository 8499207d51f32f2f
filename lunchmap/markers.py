"""Reusable pool of map markers keyed by place.

Released markers are hidden and kept for the next acquire; they are only
dropped by optimize() or when the pool moves to another surface.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .errors import MarkerPoolError
from .geo import Coordinate
from .surface import MapMarker, MapSurface

logger = logging.getLogger(__name__)


class MarkerPool:
    def __init__(self, initial_size: int = 0) -> None:
        self.initial_size = max(0, int(initial_size))
        self.surface: Optional[MapSurface] = None
        self.created_count = 0
        self._available: List[MapMarker] = []
        self._bound: Dict[str, MapMarker] = {}
        self._listener_tokens: Dict[str, Any] = {}

    def set_surface(self, surface: MapSurface) -> None:
        if self.surface is not None and surface is not self.surface:
            # Markers belong to the surface that created them.
            self.release_all()
            self._available.clear()
            logger.debug("Marker pool moved to a new surface; idle markers dropped")
        self.surface = surface
        while len(self._available) + len(self._bound) < self.initial_size:
            self._available.append(self._create(surface))
        logger.debug("Marker pool bound (available=%s)", len(self._available))

    def acquire(self, key: str, coordinate: Coordinate, title: Optional[str] = None) -> MapMarker:
        if self.surface is None:
            raise MarkerPoolError("set_surface() must be called before acquire()")
        if key in self._bound:
            raise MarkerPoolError(f"Marker key already bound: {key}")

        if self._available:
            marker = self._available.pop()
            logger.debug("Reusing marker for %s (available=%s)", key, len(self._available))
        else:
            marker = self._create(self.surface)
            logger.debug("Created marker for %s (created=%s)", key, self.created_count)

        marker.set_position(coordinate)
        marker.set_title(title)
        marker.show()
        self._bound[key] = marker
        return marker

    def release(self, key: str) -> None:
        marker = self._bound.pop(key, None)
        if marker is None:
            return
        token = self._listener_tokens.pop(key, None)
        if token is not None:
            marker.remove_click_listener(token)
        marker.hide()
        self._available.append(marker)

    def release_all(self) -> None:
        for key in list(self._bound):
            self.release(key)

    def on_click(self, key: str, callback: Callable[[str], None]) -> None:
        marker = self._bound.get(key)
        if marker is None:
            raise MarkerPoolError(f"No marker bound to {key}")
        previous = self._listener_tokens.pop(key, None)
        if previous is not None:
            marker.remove_click_listener(previous)
        self._listener_tokens[key] = marker.add_click_listener(lambda: callback(key))

    def optimize(self, max_available: int) -> int:
        keep = max(0, int(max_available))
        dropped = 0
        while len(self._available) > keep:
            self._available.pop()
            dropped += 1
        if dropped:
            logger.debug("Marker pool trimmed by %s (available=%s)", dropped, len(self._available))
        return dropped

    def is_bound(self, key: str) -> bool:
        return key in self._bound

    def bound_keys(self) -> List[str]:
        return list(self._bound)

    def stats(self) -> Dict[str, int]:
        return {
            "total": len(self._bound) + len(self._available),
            "used": len(self._bound),
            "available": len(self._available),
            "created": self.created_count,
        }

    def _create(self, surface: MapSurface) -> MapMarker:
        marker = surface.create_marker()
        marker.hide()
        self.created_count += 1
        return marker
