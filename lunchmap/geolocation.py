"""Origin acquisition with timeout and fallback."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional, Protocol

from . import config
from .errors import GeolocationUnavailableError
from .geo import Coordinate

logger = logging.getLogger(__name__)

LATITUDE_ENV = "LUNCHMAP_LATITUDE"
LONGITUDE_ENV = "LUNCHMAP_LONGITUDE"


class Locator(Protocol):
    def locate(self) -> Coordinate:
        ...


class FixedLocator:
    def __init__(self, coordinate: Coordinate) -> None:
        self.coordinate = coordinate

    def locate(self) -> Coordinate:
        return self.coordinate


class EnvLocator:
    """Reads the current position from LUNCHMAP_LATITUDE / LUNCHMAP_LONGITUDE."""

    def locate(self) -> Coordinate:
        lat = (os.environ.get(LATITUDE_ENV) or "").strip()
        lon = (os.environ.get(LONGITUDE_ENV) or "").strip()
        if not lat or not lon:
            raise GeolocationUnavailableError(f"{LATITUDE_ENV}/{LONGITUDE_ENV} not set")
        try:
            return Coordinate(float(lat), float(lon))
        except ValueError as exc:
            raise GeolocationUnavailableError(f"Invalid position in environment: {exc}") from exc


def default_origin() -> Coordinate:
    return Coordinate(config.DEFAULT_ORIGIN_LAT, config.DEFAULT_ORIGIN_LON)


async def resolve_origin(
    locator: Optional[Locator],
    timeout_seconds: Optional[float] = None,
    fallback: Optional[Coordinate] = None,
) -> Coordinate:
    fallback = fallback or default_origin()
    if locator is None:
        logger.warning("No locator configured; using default origin %s", fallback)
        return fallback
    timeout = config.GEOLOCATION_TIMEOUT_SECONDS if timeout_seconds is None else float(timeout_seconds)
    try:
        origin = await asyncio.wait_for(asyncio.to_thread(locator.locate), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Geolocation timed out after %.1fs; using default origin", timeout)
        return fallback
    except GeolocationUnavailableError as exc:
        logger.warning("Geolocation unavailable (%s); using default origin", exc)
        return fallback
    except Exception as exc:
        logger.warning("Locator failed (%s: %s); using default origin", type(exc).__name__, exc)
        return fallback
    logger.debug("Located at %s, %s", origin.latitude, origin.longitude)
    return origin
