import time

import pytest

from lunchmap import config
from lunchmap.errors import GeolocationUnavailableError
from lunchmap.geo import Coordinate
from lunchmap.geolocation import EnvLocator, FixedLocator, default_origin, resolve_origin

GANGNAM = Coordinate(37.4979, 127.0276)


class SlowLocator:
    def locate(self):
        time.sleep(0.3)
        return GANGNAM


@pytest.mark.asyncio
async def test_fixed_locator_is_used():
    assert await resolve_origin(FixedLocator(GANGNAM)) == GANGNAM


@pytest.mark.asyncio
async def test_missing_locator_falls_back_to_default():
    assert await resolve_origin(None) == Coordinate(config.DEFAULT_ORIGIN_LAT, config.DEFAULT_ORIGIN_LON)


@pytest.mark.asyncio
async def test_timeout_falls_back(caplog):
    fallback = Coordinate(35.1796, 129.0756)
    origin = await resolve_origin(SlowLocator(), timeout_seconds=0.05, fallback=fallback)
    assert origin == fallback
    assert "timed out" in caplog.text


@pytest.mark.asyncio
async def test_env_locator(monkeypatch):
    monkeypatch.setenv("LUNCHMAP_LATITUDE", "37.4979")
    monkeypatch.setenv("LUNCHMAP_LONGITUDE", "127.0276")
    assert await resolve_origin(EnvLocator()) == GANGNAM

    monkeypatch.setenv("LUNCHMAP_LATITUDE", "north")
    assert await resolve_origin(EnvLocator()) == default_origin()


def test_env_locator_requires_both_values(monkeypatch):
    monkeypatch.delenv("LUNCHMAP_LATITUDE", raising=False)
    monkeypatch.setenv("LUNCHMAP_LONGITUDE", "127.0")
    with pytest.raises(GeolocationUnavailableError):
        EnvLocator().locate()


def test_default_origin_follows_config(monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_ORIGIN_LAT", 35.1796)
    monkeypatch.setattr(config, "DEFAULT_ORIGIN_LON", 129.0756)
    assert default_origin() == Coordinate(35.1796, 129.0756)


class BrokenLocator:
    def locate(self):
        raise OSError("gps device gone")


@pytest.mark.asyncio
async def test_unexpected_locator_error_falls_back(caplog):
    fallback = Coordinate(35.1796, 129.0756)
    origin = await resolve_origin(BrokenLocator(), timeout_seconds=1.0, fallback=fallback)
    assert origin == fallback
    assert "gps device gone" in caplog.text
