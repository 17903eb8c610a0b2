"""
Structured logging: one JSON object per line, through stdlib logging.
"""
import json
import logging
from pathlib import Path

from hanzi_learning import config

LOGGER_NAME = 'hanzi_learning'
EVENTS_LOG_FILENAME = 'events.log'

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str | None = None, logs_dir: str | None = None) -> logging.Logger:
    """
    Attach handlers to the package logger (idempotent).

    The stream handler prints every record; when a logs directory is configured,
    a JSON-lines file handler receives the same records.
    """
    logger.setLevel(level or config.get_log_level())
    if not any(getattr(h, '_hanzi_stream', False) for h in logger.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter('%(message)s'))
        stream_handler._hanzi_stream = True
        logger.addHandler(stream_handler)

    target_dir = config.LOGS_DIR if logs_dir is None else logs_dir
    if target_dir and not any(getattr(h, '_hanzi_file', False) for h in logger.handlers):
        log_dir = Path(target_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / EVENTS_LOG_FILENAME, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        file_handler._hanzi_file = True
        logger.addHandler(file_handler)
    return logger


def log_event(event: str, level: int = logging.INFO, **fields) -> None:
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
