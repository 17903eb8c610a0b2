"""Tests for environment settings and JSON event logging."""
import json
import logging

from hanzi_learning import config
from hanzi_learning.event_log import log_event, logger, setup_logging


def test_stroke_urls_default_to_cdns(monkeypatch):
    monkeypatch.delenv("STROKE_DATA_URLS", raising=False)
    urls = config.get_stroke_data_urls()
    assert len(urls) == 2
    assert all("{char}" in u and "hanzi-writer-data@2.0.1" in u for u in urls)


def test_stroke_urls_from_environment(monkeypatch):
    monkeypatch.setenv("STROKE_DATA_URLS", "http://a.test/{char}.json, ,http://b.test/{char}.json")
    assert config.get_stroke_data_urls() == ["http://a.test/{char}.json", "http://b.test/{char}.json"]


def test_numeric_settings_fall_back_on_bad_values(monkeypatch):
    monkeypatch.setenv("STROKE_FETCH_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("PORT", "http")
    assert config.get_stroke_fetch_timeout() == 20.0
    assert config.get_port() == 5001


def test_ssl_verification_flag(monkeypatch):
    monkeypatch.delenv("HW_STROKES_VERIFY_SSL", raising=False)
    assert config.stroke_fetch_verify_ssl() is True
    monkeypatch.setenv("HW_STROKES_VERIFY_SSL", "0")
    assert config.stroke_fetch_verify_ssl() is False


def test_cors_origins(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://app.test, http://localhost:3000")
    assert config.get_cors_origins() == ["https://app.test", "http://localhost:3000"]


def test_setup_logging_is_idempotent(tmp_path):
    setup_logging(logs_dir=str(tmp_path))
    setup_logging(logs_dir=str(tmp_path))
    streams = [h for h in logger.handlers if getattr(h, "_hanzi_stream", False)]
    files = [h for h in logger.handlers if getattr(h, "_hanzi_file", False)]
    assert len(streams) == 1
    assert len(files) == 1
    for handler in files:
        logger.removeHandler(handler)
        handler.close()


def test_log_event_writes_json(caplog):
    with caplog.at_level(logging.INFO, logger="hanzi_learning"):
        log_event("stroke_data_fetched", character="你", strokes=7)
    record = json.loads(caplog.records[-1].getMessage())
    assert record == {"event": "stroke_data_fetched", "character": "你", "strokes": 7}
