"""Tests for StrokeDataSource: memory and disk cache, CDN fallback, error kinds."""
import json
import urllib.error

import pytest

from conftest import GEOMETRY
from hanzi_learning.errors import StrokeDataUnavailableError
from hanzi_learning.stroke_data import StrokeDataSource, cache_filename, validate_geometry

URLS = ["https://cdn-one.test/{char}.json", "https://cdn-two.test/{char}.json"]


class FakeResponse:
    def __init__(self, payload):
        self._body = json.dumps(payload).encode("utf-8") if not isinstance(payload, bytes) else payload
        self.status = 200

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class ScriptedOpener:
    """Returns (or raises) one scripted outcome per call, in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.urls = []

    def __call__(self, req, **kwargs):
        self.urls.append(req.full_url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


def not_found(url="https://cdn.test"):
    return urllib.error.HTTPError(url, 404, "Not Found", {}, None)


def make_source(tmp_path, opener):
    return StrokeDataSource(cache_dir=tmp_path, urls=URLS, timeout=1, verify_ssl=True, opener=opener)


def test_validate_geometry():
    assert validate_geometry(GEOMETRY["你"])
    assert not validate_geometry({"strokes": [], "medians": []})
    assert not validate_geometry({"strokes": ["M 0 0"], "medians": []})
    assert not validate_geometry({"strokes": ["M 0 0"], "medians": [[]]})
    assert not validate_geometry(["not", "a", "dict"])


def test_cache_filename_is_hex_code_point():
    assert cache_filename("你") == "4f60.json"


def test_fetch_writes_disk_cache(tmp_path):
    opener = ScriptedOpener(GEOMETRY["你"])
    source = make_source(tmp_path, opener)
    data = source.load("你")
    assert data["strokes"] == GEOMETRY["你"]["strokes"]
    # Percent-encoded character in the URL
    assert opener.urls == ["https://cdn-one.test/%E4%BD%A0.json"]
    cached = json.loads((tmp_path / "4f60.json").read_text(encoding="utf-8"))
    assert cached == GEOMETRY["你"]


def test_memoised_after_first_load(tmp_path):
    opener = ScriptedOpener(GEOMETRY["你"])
    source = make_source(tmp_path, opener)
    source.load("你")
    (tmp_path / "4f60.json").unlink()
    assert source.load("你")["medians"] == GEOMETRY["你"]["medians"]
    assert len(opener.urls) == 1


def test_disk_cache_hit_skips_network(tmp_path):
    (tmp_path / "4f60.json").write_text(json.dumps(GEOMETRY["你"]), encoding="utf-8")
    opener = ScriptedOpener()
    source = make_source(tmp_path, opener)
    assert source.load("你") == GEOMETRY["你"]
    assert opener.urls == []


def test_corrupt_cache_is_replaced(tmp_path):
    (tmp_path / "4f60.json").write_text("{not json", encoding="utf-8")
    opener = ScriptedOpener(GEOMETRY["你"])
    source = make_source(tmp_path, opener)
    assert source.load("你") == GEOMETRY["你"]
    assert json.loads((tmp_path / "4f60.json").read_text(encoding="utf-8")) == GEOMETRY["你"]


def test_falls_back_to_second_cdn(tmp_path):
    opener = ScriptedOpener(urllib.error.URLError("blocked"), GEOMETRY["好"])
    source = make_source(tmp_path, opener)
    assert source.load("好") == GEOMETRY["好"]
    assert len(opener.urls) == 2


def test_not_found_everywhere_is_permanent(tmp_path):
    opener = ScriptedOpener(not_found(), not_found())
    source = make_source(tmp_path, opener)
    with pytest.raises(StrokeDataUnavailableError) as excinfo:
        source.load("龘")
    assert excinfo.value.transient is False
    assert excinfo.value.reason == "no stroke data"


def test_network_failure_is_transient(tmp_path):
    opener = ScriptedOpener(not_found(), TimeoutError("timed out"))
    source = make_source(tmp_path, opener)
    with pytest.raises(StrokeDataUnavailableError) as excinfo:
        source.load("你")
    assert excinfo.value.transient is True
    assert "timed out" in excinfo.value.reason


def test_invalid_remote_geometry_is_skipped(tmp_path):
    opener = ScriptedOpener({"strokes": []}, GEOMETRY["你"])
    source = make_source(tmp_path, opener)
    assert source.load("你") == GEOMETRY["你"]


def test_misses_are_not_memoised(tmp_path):
    opener = ScriptedOpener(not_found(), not_found(), GEOMETRY["你"])
    source = make_source(tmp_path, opener)
    assert source.probe("你") is None
    assert source.probe("你") == GEOMETRY["你"]


@pytest.mark.parametrize("value", ["", "你好"])
def test_load_requires_single_character(tmp_path, value):
    opener = ScriptedOpener()
    source = make_source(tmp_path, opener)
    with pytest.raises(StrokeDataUnavailableError):
        source.load(value)
    assert opener.urls == []


def test_forget_drops_memory(tmp_path):
    opener = ScriptedOpener(GEOMETRY["你"], GEOMETRY["你"])
    source = make_source(tmp_path, opener)
    source.load("你")
    (tmp_path / "4f60.json").unlink()
    source.forget("你")
    source.load("你")
    assert len(opener.urls) == 2


def test_unwritable_cache_still_returns_data(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    opener = ScriptedOpener(GEOMETRY["你"])
    source = StrokeDataSource(cache_dir=blocker / "cache", urls=URLS, opener=opener)
    assert source.load("你") == GEOMETRY["你"]
