"""Progressive radius expansion over distance-annotated places."""
from __future__ import annotations

from typing import List, Optional, Sequence

from . import config
from .models import PlaceRecord, RadiusSelection


def select(
    records: Sequence[PlaceRecord],
    ladder: Optional[Sequence[int]] = None,
    min_count: Optional[int] = None,
) -> RadiusSelection:
    """Pick the smallest ladder rung holding at least ``min_count`` places.

    Falls back to the closest ``min_count`` places overall when no rung is
    wide enough; the effective radius is then the farthest included distance.
    """
    rungs = config.validate_ladder(list(config.RADIUS_LADDER_M if ladder is None else ladder))
    wanted = config.MIN_RESULT_COUNT if min_count is None else int(min_count)
    if wanted <= 0:
        raise ValueError("min_count must be positive")

    for record in records:
        if record.distance_m is None:
            raise ValueError(f"Place {record.id} has no distance")

    # sorted() is stable, so ties keep discovery order.
    ordered: List[PlaceRecord] = sorted(records, key=lambda r: r.distance_m)
    if not ordered:
        return RadiusSelection(selected=(), effective_radius_m=0.0)

    for radius in rungs:
        within = [r for r in ordered if r.distance_m <= radius]
        if len(within) >= wanted:
            return RadiusSelection(selected=tuple(within[:wanted]), effective_radius_m=float(radius))

    closest = ordered[:wanted]
    return RadiusSelection(selected=tuple(closest), effective_radius_m=float(closest[-1].distance_m))
