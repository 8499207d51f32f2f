import pytest

from lunchmap.errors import MarkerPoolError
from lunchmap.geo import Coordinate
from lunchmap.markers import MarkerPool
from lunchmap.surface import InMemorySurface

POS = Coordinate(37.5665, 126.9780)


def make_pool(initial_size=0):
    surface = InMemorySurface()
    pool = MarkerPool(initial_size=initial_size)
    pool.set_surface(surface)
    return pool, surface


def test_released_markers_are_reused():
    pool, surface = make_pool()
    for key in ("a", "b", "c", "d", "e"):
        pool.acquire(key, POS)
    for key in ("a", "b", "c"):
        pool.release(key)
    for key in ("f", "g", "h"):
        pool.acquire(key, POS)

    assert pool.created_count == 5
    assert len(surface.markers) == 5
    assert len(surface.visible_markers()) == 5
    assert pool.stats() == {"total": 5, "used": 5, "available": 0, "created": 5}


def test_initial_size_preallocates_hidden_markers():
    pool, surface = make_pool(initial_size=3)
    assert pool.created_count == 3
    assert surface.visible_markers() == []
    pool.acquire("a", POS, title="A")
    assert pool.created_count == 3
    visible = surface.visible_markers()
    assert len(visible) == 1
    assert visible[0].title == "A"
    assert visible[0].position == POS


def test_release_unknown_key_is_noop():
    pool, _ = make_pool()
    pool.release("missing")
    assert pool.stats()["total"] == 0


def test_release_all_hides_everything():
    pool, surface = make_pool()
    pool.acquire("a", POS)
    pool.acquire("b", POS)
    pool.release_all()
    assert surface.visible_markers() == []
    assert pool.bound_keys() == []
    assert pool.stats()["available"] == 2


def test_on_click_replaces_previous_handler():
    pool, surface = make_pool()
    marker = pool.acquire("a", POS)
    calls = []
    pool.on_click("a", lambda key: calls.append(("first", key)))
    pool.on_click("a", lambda key: calls.append(("second", key)))
    assert marker.listener_count == 1
    marker.click()
    assert calls == [("second", "a")]


def test_rebinding_drops_stale_listeners():
    pool, _ = make_pool()
    marker = pool.acquire("old", POS)
    calls = []
    pool.on_click("old", calls.append)
    pool.release("old")
    reused = pool.acquire("new", POS)
    assert reused is marker
    assert reused.listener_count == 0
    pool.on_click("new", calls.append)
    reused.click()
    assert calls == ["new"]


def test_optimize_trims_available():
    pool, _ = make_pool()
    for i in range(6):
        pool.acquire(str(i), POS)
    pool.release_all()
    assert pool.optimize(2) == 4
    assert pool.stats()["available"] == 2
    assert pool.optimize(2) == 0


def test_precondition_violations_raise():
    pool = MarkerPool()
    with pytest.raises(MarkerPoolError):
        pool.acquire("a", POS)

    pool.set_surface(InMemorySurface())
    pool.acquire("a", POS)
    with pytest.raises(MarkerPoolError):
        pool.acquire("a", POS)
    with pytest.raises(MarkerPoolError):
        pool.on_click("missing", lambda key: None)


def test_pools_are_independent():
    pool1, surface1 = make_pool()
    pool2, surface2 = make_pool()
    pool1.acquire("a", POS)
    pool2.acquire("a", POS)
    assert len(surface1.markers) == 1
    assert len(surface2.markers) == 1


def test_switching_surface_drops_old_markers():
    pool, old_surface = make_pool()
    pool.acquire("a", POS)
    new_surface = InMemorySurface()
    pool.set_surface(new_surface)
    assert old_surface.visible_markers() == []
    pool.acquire("a", POS)
    assert len(new_surface.markers) == 1
    assert pool.created_count == 2


def test_preallocation_waits_for_a_surface():
    pool = MarkerPool(initial_size=4)
    assert pool.created_count == 0
    with pytest.raises(MarkerPoolError):
        pool.acquire("a", POS)

    surface = InMemorySurface()
    pool.set_surface(surface)
    assert pool.created_count == 4
    assert len(surface.markers) == 4
