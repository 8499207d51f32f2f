"""Map drawing surface contract and a headless in-memory implementation."""
from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, List, Optional, Protocol

from .geo import Coordinate

ClickHandler = Callable[[], None]


class MapMarker(Protocol):
    def set_position(self, coordinate: Coordinate) -> None:
        ...

    def set_title(self, title: Optional[str]) -> None:
        ...

    def show(self) -> None:
        ...

    def hide(self) -> None:
        ...

    def add_click_listener(self, handler: ClickHandler) -> Any:
        ...

    def remove_click_listener(self, token: Any) -> None:
        ...


class MapSurface(Protocol):
    def create_marker(self) -> MapMarker:
        ...

    def set_center(self, coordinate: Coordinate, level: Optional[int] = None) -> None:
        ...


class InMemoryMarker:
    _ids = itertools.count(1)

    def __init__(self) -> None:
        self.marker_id = next(self._ids)
        self.position: Optional[Coordinate] = None
        self.title: Optional[str] = None
        self.visible = False
        self._listeners: Dict[int, ClickHandler] = {}
        self._tokens = itertools.count(1)

    def set_position(self, coordinate: Coordinate) -> None:
        self.position = coordinate

    def set_title(self, title: Optional[str]) -> None:
        self.title = title

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    def add_click_listener(self, handler: ClickHandler) -> int:
        token = next(self._tokens)
        self._listeners[token] = handler
        return token

    def remove_click_listener(self, token: Any) -> None:
        self._listeners.pop(token, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def click(self) -> None:
        for handler in list(self._listeners.values()):
            handler()


class InMemorySurface:
    def __init__(self) -> None:
        self.markers: List[InMemoryMarker] = []
        self.center: Optional[Coordinate] = None
        self.level: Optional[int] = None

    def create_marker(self) -> InMemoryMarker:
        marker = InMemoryMarker()
        self.markers.append(marker)
        return marker

    def set_center(self, coordinate: Coordinate, level: Optional[int] = None) -> None:
        self.center = coordinate
        if level is not None:
            self.level = level

    def visible_markers(self) -> List[InMemoryMarker]:
        return [m for m in self.markers if m.visible]

    def to_geojson(self) -> Dict[str, Any]:
        features = []
        for marker in self.visible_markers():
            if marker.position is None:
                continue
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "Point",
                        "coordinates": [marker.position.longitude, marker.position.latitude],
                    },
                    "properties": {"title": marker.title, "marker_id": marker.marker_id},
                }
            )
        return {"type": "FeatureCollection", "features": features}
