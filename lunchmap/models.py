"""Search data model."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from . import config
from .geo import Coordinate, distance_m


class ProviderStatus(enum.Enum):
    OK = "OK"
    ZERO_RESULT = "ZERO_RESULT"
    ERROR_RESPONSE = "ERROR_RESPONSE"
    INVALID_PARAMS = "INVALID_PARAMS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_raw(cls, value: Any) -> "ProviderStatus":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def failed(self) -> bool:
        return self not in (ProviderStatus.OK, ProviderStatus.ZERO_RESULT)


@dataclass(frozen=True)
class PlaceRecord:
    id: str
    name: str
    coordinate: Coordinate
    address: str = ""
    road_address: Optional[str] = None
    phone: Optional[str] = None
    category_name: Optional[str] = None
    external_url: Optional[str] = None
    distance_m: Optional[float] = None

    def with_distance(self, origin: Coordinate) -> "PlaceRecord":
        return replace(self, distance_m=distance_m(origin, self.coordinate))

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lat": self.coordinate.latitude,
            "lon": self.coordinate.longitude,
            "address": self.address,
            "road_address": self.road_address,
            "phone": self.phone,
            "category_name": self.category_name,
            "external_url": self.external_url,
            "distance_m": self.distance_m,
        }


@dataclass(frozen=True)
class SearchQuery:
    keyword: str
    origin: Coordinate
    radius_m: int

    def to_options(self, page: int = 1) -> Dict[str, Any]:
        return {
            "location": self.origin,
            "radius": int(self.radius_m),
            "page": page,
            "size": config.PLACES_PAGE_SIZE,
            "sort": config.PLACES_SORT,
        }


@dataclass(frozen=True)
class QueryOutcome:
    keyword: str
    status: ProviderStatus
    records: Tuple[PlaceRecord, ...] = ()
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status.failed


class AggregatedResultSet:
    """Places keyed by id. The first record seen for an id wins."""

    def __init__(self) -> None:
        self._records: Dict[str, PlaceRecord] = {}
        self.found_by: Dict[str, List[str]] = {}
        self.outcomes: List[QueryOutcome] = []

    def merge(self, records: Iterable[PlaceRecord], keyword: Optional[str] = None) -> int:
        added = 0
        for record in records:
            if record.id not in self._records:
                self._records[record.id] = record
                self.found_by[record.id] = []
                added += 1
            if keyword is not None and keyword not in self.found_by[record.id]:
                self.found_by[record.id].append(keyword)
        return added

    def records(self) -> List[PlaceRecord]:
        return list(self._records.values())

    def get(self, place_id: str) -> Optional[PlaceRecord]:
        return self._records.get(place_id)

    @property
    def failures(self) -> List[QueryOutcome]:
        return [o for o in self.outcomes if o.failed]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, place_id: object) -> bool:
        return place_id in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)


@dataclass(frozen=True)
class RadiusSelection:
    selected: Tuple[PlaceRecord, ...] = field(default_factory=tuple)
    effective_radius_m: float = 0.0
