"""
Environment-driven settings.

Paths are resolved once at import time; credentials and tunables are read on
demand so tests (and long-running servers) pick up environment changes.
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env.local if it exists (for local development)
load_dotenv('.env.local')

_package_dir = Path(__file__).resolve().parent
BASE_DIR = _package_dir.parent

# Data directory - default to /app/data in container, or relative path for local dev
if os.getenv('DATA_DIR'):
    DATA_DIR = Path(os.getenv('DATA_DIR'))
elif Path('/app/data').exists():
    DATA_DIR = Path('/app/data')
else:
    DATA_DIR = BASE_DIR / "data"

HANZI_WRITER_CACHE_DIR = Path(os.getenv('HANZI_WRITER_CACHE_DIR', str(DATA_DIR / "temp" / "hanzi_writer")))

# Logs directory; empty LOGS_DIR disables the JSON-lines file handler
LOGS_DIR = os.getenv('LOGS_DIR', '').strip()

HANZI_WRITER_DATA_VERSION = "2.0.1"
DEFAULT_STROKE_DATA_URLS = [
    f"https://cdn.jsdelivr.net/npm/hanzi-writer-data@{HANZI_WRITER_DATA_VERSION}/{{char}}.json",
    f"https://unpkg.com/hanzi-writer-data@{HANZI_WRITER_DATA_VERSION}/{{char}}.json",
]

DEFAULT_OPENAI_MODEL = "gpt-5-mini"


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, '').strip() or default)
    except ValueError:
        return default


def get_openai_api_key() -> str:
    return os.getenv('OPENAI_API_KEY', '').strip()


def get_openai_model() -> str:
    return os.getenv('OPENAI_MODEL', '').strip() or DEFAULT_OPENAI_MODEL


def get_openai_timeout() -> float:
    return _env_float('OPENAI_TIMEOUT_SECONDS', 60.0)


def get_stroke_data_urls() -> List[str]:
    """
    URL templates for stroke JSON. Each template contains a ``{char}``
    placeholder that receives the percent-encoded character.
    """
    raw = os.getenv('STROKE_DATA_URLS', '').strip()
    if not raw:
        return list(DEFAULT_STROKE_DATA_URLS)
    return [u.strip() for u in raw.split(',') if u.strip()]


def get_stroke_fetch_timeout() -> float:
    return _env_float('STROKE_FETCH_TIMEOUT_SECONDS', 20.0)


def stroke_fetch_verify_ssl() -> bool:
    return _env_flag('HW_STROKES_VERIFY_SSL', '1')


def get_cors_origins() -> List[str]:
    raw = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    return [origin.strip() for origin in raw if origin.strip()]


def get_log_level() -> str:
    return os.getenv('LOG_LEVEL', 'INFO').strip().upper() or 'INFO'


def get_generate_api_url() -> str:
    return os.getenv('GENERATE_API_URL', 'http://localhost:5001').strip().rstrip('/')


def get_port() -> int:
    try:
        return int(os.getenv('PORT', '5001'))
    except ValueError:
        return 5001


def debug_enabled() -> bool:
    return _env_flag('FLASK_DEBUG')
