"""CLI entrypoint."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from dotenv import load_dotenv as _load_dotenv

from lunchmap import config
from lunchmap.coordinator import GeoSearchCoordinator, SearchSnapshot, SearchState
from lunchmap.errors import LunchMapError
from lunchmap.geo import Coordinate
from lunchmap.geolocation import EnvLocator, FixedLocator, Locator
from lunchmap.http import HttpClient, RequestMetrics
from lunchmap.models import ProviderStatus
from lunchmap.places_client import KakaoPlacesClient, PlacesProvider
from lunchmap.reporting import (
    build_result_rows,
    ensure_dir,
    render_summary,
    write_json_object,
    write_results_csv,
    write_results_json,
    write_summary,
)
from lunchmap.surface import InMemorySurface


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def parse_ladder(value: Optional[str]) -> Optional[List[int]]:
    if value is None:
        return None
    rungs = [int(v.strip()) for v in value.split(",") if v.strip()]
    return config.validate_ladder(rungs)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find lunch places near you for a menu")
    parser.add_argument("--menu", type=str, default=None, help="Menu to search for (e.g. 김치찌개)")
    parser.add_argument("--preflight", action="store_true", help="Run offline checks only")
    parser.add_argument(
        "--preflight-online",
        action="store_true",
        help="Run offline checks + one keyword search",
    )
    parser.add_argument("--lat", type=float, default=None, help="Origin latitude")
    parser.add_argument("--lon", type=float, default=None, help="Origin longitude")
    parser.add_argument(
        "--min-count",
        type=int,
        default=None,
        help=f"Minimum number of places to show (default: {config.MIN_RESULT_COUNT})",
    )
    parser.add_argument(
        "--ladder",
        type=str,
        default=None,
        help="Comma-separated ascending search radii in meters",
    )
    parser.add_argument(
        "--keyword-strategy",
        choices=list(config.KEYWORD_STRATEGIES),
        default=None,
        help=f"How to expand the menu into keywords (default: {config.KEYWORD_STRATEGY})",
    )
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    return parser.parse_args(argv)


async def run_search(
    provider: PlacesProvider,
    menu: str,
    locator: Optional[Locator],
    ladder: Optional[List[int]] = None,
    min_count: Optional[int] = None,
    keyword_strategy: Optional[str] = None,
) -> Tuple[Optional[SearchSnapshot], InMemorySurface]:
    surface = InMemorySurface()
    coordinator = GeoSearchCoordinator(
        provider,
        surface,
        ladder=ladder,
        min_count=min_count,
        keyword_strategy=keyword_strategy,
    )
    snapshot = await coordinator.search_from_location(menu, locator)
    return snapshot, surface


def run_preflight(api_key: Optional[str], online: bool) -> int:
    ok = True

    if api_key:
        print("API key: OK")
    else:
        print("API key: MISSING")
        ok = False

    try:
        config.validate_ladder(config.RADIUS_LADDER_M)
        print(f"Radius ladder: OK ({', '.join(str(r) for r in config.RADIUS_LADDER_M)} m)")
    except ValueError as exc:
        print(f"Radius ladder: FAIL ({exc})")
        ok = False

    print(
        "Search policy: min_count={min_count}, keyword_strategy={strategy}".format(
            min_count=config.MIN_RESULT_COUNT,
            strategy=config.KEYWORD_STRATEGY,
        )
    )

    if online:
        if not api_key:
            print("Online keyword search: FAIL (missing API key)")
            ok = False
        else:
            client = KakaoPlacesClient(
                HttpClient(api_key, timeout=config.HTTP_TIMEOUT_SECONDS, retry_max=1),
            )
            outcome = {}

            def callback(results, status):
                outcome["status"] = ProviderStatus.from_raw(status)
                outcome["count"] = len(results or [])

            origin = Coordinate(config.DEFAULT_ORIGIN_LAT, config.DEFAULT_ORIGIN_LON)
            client.keyword_search(
                "점심",
                callback,
                {"location": origin, "radius": config.RADIUS_LADDER_M[0], "size": 1},
            )
            status = outcome.get("status", ProviderStatus.UNKNOWN)
            if status.failed:
                print(f"Online keyword search: FAIL ({status.value})")
                ok = False
            else:
                print(f"Online keyword search: OK ({status.value})")

    print("Preflight: PASS" if ok else "Preflight: FAIL")
    return 0 if ok else 1


def write_outputs(out_dir: str, snapshot: SearchSnapshot, surface: InMemorySurface, metrics: RequestMetrics) -> None:
    ensure_dir(out_dir)
    rows = build_result_rows(snapshot.selected)
    write_results_json(os.path.join(out_dir, "results.json"), rows)
    write_results_csv(os.path.join(out_dir, "results.csv"), rows)
    write_json_object(os.path.join(out_dir, "markers.geojson"), surface.to_geojson())
    write_summary(os.path.join(out_dir, "summary.txt"), render_summary(snapshot, metrics))


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env()
    config.load_lunch_config()
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    api_key = (os.environ.get(config.API_KEY_ENV) or "").strip()
    if args.preflight or args.preflight_online:
        return run_preflight(api_key, online=args.preflight_online)

    if not args.menu:
        print("--menu is required", file=sys.stderr)
        return 1
    if not api_key:
        print(f"Missing {config.API_KEY_ENV} in environment", file=sys.stderr)
        return 1
    if (args.lat is None) != (args.lon is None):
        print("--lat and --lon must be given together", file=sys.stderr)
        return 1

    try:
        ladder = parse_ladder(args.ladder)
        locator: Locator = EnvLocator()
        if args.lat is not None and args.lon is not None:
            locator = FixedLocator(Coordinate(args.lat, args.lon))

        metrics = RequestMetrics()
        http_client = HttpClient(
            api_key,
            timeout=config.HTTP_TIMEOUT_SECONDS,
            retry_max=config.HTTP_RETRY_MAX,
            backoff_base=config.HTTP_BACKOFF_BASE,
            backoff_max=config.HTTP_BACKOFF_MAX,
        )
        client = KakaoPlacesClient(http_client, metrics=metrics)
        snapshot, surface = asyncio.run(
            run_search(
                client,
                args.menu,
                locator,
                ladder=ladder,
                min_count=args.min_count,
                keyword_strategy=args.keyword_strategy,
            )
        )
    except (ValueError, LunchMapError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if snapshot is None:
        print("Search was superseded before it finished", file=sys.stderr)
        return 1

    write_outputs(args.out, snapshot, surface, metrics)
    for line in render_summary(snapshot, metrics):
        print(line)

    if snapshot.state is SearchState.ERROR:
        print(f"Search failed. Details written to {args.out}/summary.txt", file=sys.stderr)
        return 1
    print(f"Done. Results written to {args.out}/results.csv and {args.out}/results.json")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
