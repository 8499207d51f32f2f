"""Project configuration.

Loads user-defined search parameters from lunch_config.json when available,
falling back to sensible defaults. Keep provider request shapes centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

KAKAO_KEYWORD_SEARCH_URL = "https://dapi.kakao.com/v2/local/search/keyword.json"
API_KEY_ENV = "KAKAO_REST_API_KEY"

# --- Places API request shape ---

PLACES_CATEGORY_CODE = "FD6"  # restaurants
PLACES_SORT = "distance"
PLACES_PAGE_SIZE = 15
PLACES_MAX_RADIUS_M = 20000

# --- Search policy ---

# Provider queries are clamped to PLACES_MAX_RADIUS_M, so rungs above it only
# widen the local filter over what the 20 km query already returned.
RADIUS_LADDER_M: List[int] = [3000, 5000, 10000, 15000, 20000, 30000]
MIN_RESULT_COUNT = 5

KEYWORD_STRATEGIES = ("menu_only", "synonyms", "nearby")
KEYWORD_STRATEGY = "synonyms"
FALLBACK_KEYWORDS: List[str] = ["맛집", "음식점"]
NEARBY_SUFFIX = "근처"

# Seoul City Hall
DEFAULT_ORIGIN_LAT = 37.5665
DEFAULT_ORIGIN_LON = 126.9780

# --- Timeouts ---

PROVIDER_READY_TIMEOUT_SECONDS = 5.0
PROVIDER_READY_POLL_SECONDS = 0.1
GEOLOCATION_TIMEOUT_SECONDS = 10.0
QUERY_TIMEOUT_SECONDS = 15.0

# --- Map surface ---

MARKER_POOL_INITIAL_SIZE = 10
MARKER_POOL_MAX_AVAILABLE = 20
MAP_LEVEL_SEARCH = 4
MAP_LEVEL_PLACE = 3

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 10
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Outputs ---

OUTPUT_DIR = "out"


def validate_ladder(ladder: List[int]) -> List[int]:
    rungs = [int(r) for r in ladder]
    if not rungs:
        raise ValueError("Radius ladder must not be empty")
    if rungs[0] <= 0:
        raise ValueError("Radius ladder rungs must be positive")
    for prev, cur in zip(rungs, rungs[1:]):
        if cur <= prev:
            raise ValueError(f"Radius ladder must be strictly increasing: {rungs}")
    return rungs


def load_lunch_config(path: Optional[str] = None) -> bool:
    """Load search configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "lunch_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)

    globals_ref = globals()

    origin = data.get("default_origin", {})
    if origin.get("lat") is not None and origin.get("lon") is not None:
        globals_ref["DEFAULT_ORIGIN_LAT"] = float(origin["lat"])
        globals_ref["DEFAULT_ORIGIN_LON"] = float(origin["lon"])

    ladder = data.get("radius_ladder_m")
    if ladder:
        globals_ref["RADIUS_LADDER_M"] = validate_ladder(ladder)

    min_count = data.get("min_result_count")
    if min_count is not None:
        if int(min_count) <= 0:
            raise ValueError("min_result_count must be positive")
        globals_ref["MIN_RESULT_COUNT"] = int(min_count)

    keywords = data.get("keywords", {})
    strategy = keywords.get("strategy")
    if strategy is not None:
        if strategy not in KEYWORD_STRATEGIES:
            raise ValueError(f"Unknown keyword strategy: {strategy}")
        globals_ref["KEYWORD_STRATEGY"] = strategy
    fallbacks = keywords.get("fallbacks")
    if fallbacks is not None:
        globals_ref["FALLBACK_KEYWORDS"] = [str(k) for k in fallbacks]
    if keywords.get("nearby_suffix"):
        globals_ref["NEARBY_SUFFIX"] = str(keywords["nearby_suffix"])

    if data.get("category_code") is not None:
        globals_ref["PLACES_CATEGORY_CODE"] = data["category_code"] or ""

    timeouts = data.get("timeouts", {})
    if "provider_ready_seconds" in timeouts:
        globals_ref["PROVIDER_READY_TIMEOUT_SECONDS"] = float(timeouts["provider_ready_seconds"])
    if "geolocation_seconds" in timeouts:
        globals_ref["GEOLOCATION_TIMEOUT_SECONDS"] = float(timeouts["geolocation_seconds"])
    if "query_seconds" in timeouts:
        globals_ref["QUERY_TIMEOUT_SECONDS"] = float(timeouts["query_seconds"])

    markers = data.get("marker_pool", {})
    if "initial_size" in markers:
        globals_ref["MARKER_POOL_INITIAL_SIZE"] = int(markers["initial_size"])
    if "max_available" in markers:
        globals_ref["MARKER_POOL_MAX_AVAILABLE"] = int(markers["max_available"])

    return True
