"""Output reporting helpers."""
from __future__ import annotations

import csv
import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO

from .coordinator import SearchSnapshot
from .geo import haversine_km
from .http import RequestMetrics
from .models import PlaceRecord


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


RESULT_FIELDNAMES = [
    "rank",
    "id",
    "name",
    "distance_m",
    "lat",
    "lon",
    "address",
    "road_address",
    "phone",
    "category_name",
    "external_url",
]


def build_result_rows(places: Iterable[PlaceRecord]) -> List[Dict[str, Any]]:
    rows = []
    for rank, place in enumerate(places, start=1):
        row = place.to_row()
        row["rank"] = rank
        if row["distance_m"] is not None:
            row["distance_m"] = round(row["distance_m"], 1)
        rows.append(row)
    return rows


def write_results_csv(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    rows = list(rows)
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=RESULT_FIELDNAMES)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: row.get(k) for k in RESULT_FIELDNAMES})


def write_results_json(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(list(rows), f, ensure_ascii=False, indent=2)


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def render_summary(snapshot: SearchSnapshot, metrics: Optional[RequestMetrics] = None) -> List[str]:
    lines = [
        f"generated_at: {utc_now_iso()}",
        f"state: {snapshot.state.value}",
        f"menu: {snapshot.menu}",
    ]
    if snapshot.origin is not None:
        lines.append(f"origin: {snapshot.origin.latitude:.5f},{snapshot.origin.longitude:.5f}")
    lines.append(f"keywords: {', '.join(snapshot.keywords)}")
    if snapshot.failed_keywords:
        lines.append(f"failed_keywords: {', '.join(snapshot.failed_keywords)}")
    if snapshot.error is not None:
        lines.append(f"error: {type(snapshot.error).__name__}: {snapshot.error}")
    if snapshot.notice:
        lines.append(f"notice: {snapshot.notice}")
    lines.append(f"places: {len(snapshot.selected)}")
    lines.append(f"effective_radius_km: {snapshot.effective_radius_m / 1000.0:.2f}")
    for rank, place in enumerate(snapshot.selected, start=1):
        dist_km = place.distance_m / 1000.0 if place.distance_m is not None else float("nan")
        lines.append(f"  {rank}. {place.name} ({dist_km:.2f} km) {place.road_address or place.address}")
    if snapshot.highlighted is not None and snapshot.origin is not None:
        h = snapshot.highlighted
        straight_km = haversine_km(
            snapshot.origin.latitude,
            snapshot.origin.longitude,
            h.coordinate.latitude,
            h.coordinate.longitude,
        )
        lines.append(f"highlighted: {h.name} ({straight_km:.2f} km)")
    if metrics is not None:
        lines.append(
            f"requests: network={metrics.network_places} memo_hits={metrics.memo_hits_places} "
            f"failed={metrics.failed_places}"
        )
    return lines


def write_summary(path: str, summary_lines: List[str]) -> None:
    atomic_write_text(path, "\n".join(summary_lines))
