import json

import pytest

from lunchmap.reporting import atomic_write_text, atomic_writer, write_json_object


def test_atomic_write_text_replaces_content(tmp_path):
    path = tmp_path / "summary.txt"

    atomic_write_text(str(path), "state: searching")
    atomic_write_text(str(path), "state: done")

    assert path.read_text(encoding="utf-8") == "state: done"
    assert [p.name for p in tmp_path.iterdir()] == ["summary.txt"]


def test_interrupted_write_keeps_previous_file(tmp_path):
    path = tmp_path / "results.json"
    write_json_object(str(path), {"places": 2})

    with pytest.raises(RuntimeError):
        with atomic_writer(str(path)) as f:
            f.write('{"places": ')
            raise RuntimeError("disk unplugged")

    assert json.loads(path.read_text(encoding="utf-8")) == {"places": 2}
    assert [p.name for p in tmp_path.iterdir()] == ["results.json"]


def test_geojson_write_keeps_hangul(tmp_path):
    path = tmp_path / "markers.geojson"
    payload = {"type": "FeatureCollection", "features": [{"properties": {"title": "김치찌개"}}]}

    write_json_object(str(path), payload)

    text = path.read_text(encoding="utf-8")
    assert "김치찌개" in text
    assert json.loads(text) == payload
