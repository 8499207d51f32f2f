"""Places provider contract, Kakao Local keyword client and response parsing."""
from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import requests

from . import config
from .geo import Coordinate
from .http import HttpClient, RequestMetrics
from .models import PlaceRecord, ProviderStatus

logger = logging.getLogger(__name__)

SearchCallback = Callable[[List[Dict[str, Any]], Any], None]


class PlacesProvider(Protocol):
    def is_ready(self) -> bool:
        ...

    def keyword_search(
        self,
        keyword: str,
        callback: SearchCallback,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


def make_request_cache_key(url: str, params: Dict[str, Any]) -> str:
    payload = json.dumps(params, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    raw = f"{url}|{payload}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


class KakaoPlacesClient:
    """Keyword search against the Kakao Local REST API.

    Reports through ``callback(documents, status)`` like the JS SDK does;
    the call itself blocks, so async callers run it in a worker thread.
    """

    def __init__(
        self,
        http_client: HttpClient,
        metrics: Optional[RequestMetrics] = None,
        no_memo: bool = False,
    ) -> None:
        self.http = http_client
        self.metrics = metrics
        self.no_memo = no_memo
        self._memory_cache: Dict[str, List[Dict[str, Any]]] = {}

    def is_ready(self) -> bool:
        return bool((self.http.api_key or "").strip())

    def keyword_search(
        self,
        keyword: str,
        callback: SearchCallback,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            params = build_keyword_search_params(keyword, options or {})
        except ValueError as exc:
            logger.error("Invalid keyword search parameters for %r: %s", keyword, exc)
            self._count_failure()
            callback([], ProviderStatus.INVALID_PARAMS)
            return

        key = make_request_cache_key(config.KAKAO_KEYWORD_SEARCH_URL, params)
        documents = None if self.no_memo else self._memory_cache.get(key)
        if documents is not None:
            if self.metrics is not None:
                self.metrics.inc_memo_hit()
        else:
            if self.metrics is not None:
                self.metrics.inc_network()
            try:
                response = self.http.get_json(config.KAKAO_KEYWORD_SEARCH_URL, params)
            except requests.HTTPError as exc:
                status = status_for_http_error(exc)
                logger.warning("Keyword search %r failed: %s (%s)", keyword, exc, status.value)
                self._count_failure()
                callback([], status)
                return
            except (requests.RequestException, ValueError) as exc:
                logger.warning("Keyword search %r failed: %s", keyword, exc)
                self._count_failure()
                callback([], ProviderStatus.ERROR_RESPONSE)
                return
            documents = list(response.get("documents") or [])
            if not self.no_memo:
                self._memory_cache[key] = documents

        status = ProviderStatus.OK if documents else ProviderStatus.ZERO_RESULT
        callback(list(documents), status)

    def _count_failure(self) -> None:
        if self.metrics is not None:
            self.metrics.inc_failure()


def status_for_http_error(exc: requests.HTTPError) -> ProviderStatus:
    response = exc.response
    if response is not None and response.status_code == 400:
        return ProviderStatus.INVALID_PARAMS
    return ProviderStatus.ERROR_RESPONSE


def _coerce_location(location: Any) -> Tuple[float, float]:
    if isinstance(location, Coordinate):
        return location.latitude, location.longitude
    if isinstance(location, dict):
        lat = location.get("latitude", location.get("lat"))
        lon = location.get("longitude", location.get("lng", location.get("lon")))
        if lat is not None and lon is not None:
            return float(lat), float(lon)
    if isinstance(location, (tuple, list)) and len(location) == 2:
        return float(location[0]), float(location[1])
    raise ValueError(f"Unsupported location: {location!r}")


def build_keyword_search_params(keyword: str, options: Dict[str, Any]) -> Dict[str, Any]:
    query = str(keyword or "").strip()
    if not query:
        raise ValueError("Keyword must not be empty")

    size = int(options.get("size") or config.PLACES_PAGE_SIZE)
    params: Dict[str, Any] = {
        "query": query,
        "page": max(1, int(options.get("page") or 1)),
        "size": max(1, min(size, config.PLACES_PAGE_SIZE)),
    }

    location = options.get("location")
    radius = options.get("radius")
    if location is not None:
        lat, lon = _coerce_location(location)
        params["x"] = lon
        params["y"] = lat
        if radius is not None:
            params["radius"] = max(0, min(int(radius), config.PLACES_MAX_RADIUS_M))

    sort = options.get("sort")
    if sort:
        # Distance sorting is only meaningful around a location.
        params["sort"] = sort if location is not None else "accuracy"

    category = options.get("category_group_code", config.PLACES_CATEGORY_CODE)
    if category:
        params["category_group_code"] = category
    return params


# Adapter/mapper for provider document fields

def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_place_document(raw: Dict[str, Any]) -> Optional[PlaceRecord]:
    place_id = _first(raw, "id", "place_id")
    if not place_id:
        return None
    lat = _first(raw, "y", "lat", "latitude")
    lon = _first(raw, "x", "lng", "lon", "longitude")
    if lat is None or lon is None:
        return None
    try:
        coordinate = Coordinate(float(lat), float(lon))
    except (TypeError, ValueError):
        return None
    # Provider "distance" is not read; distances are recomputed from the origin.
    return PlaceRecord(
        id=str(place_id),
        name=str(_first(raw, "place_name", "name") or ""),
        coordinate=coordinate,
        address=str(_first(raw, "address_name", "address") or ""),
        road_address=_first(raw, "road_address_name", "road_address"),
        phone=_first(raw, "phone"),
        category_name=_first(raw, "category_name"),
        external_url=_first(raw, "place_url", "url"),
    )


def parse_places(documents: Iterable[Any]) -> List[PlaceRecord]:
    parsed: List[PlaceRecord] = []
    for raw in documents or []:
        if isinstance(raw, PlaceRecord):
            parsed.append(raw)
            continue
        if not isinstance(raw, dict):
            continue
        record = parse_place_document(raw)
        if record is not None:
            parsed.append(record)
    return parsed
