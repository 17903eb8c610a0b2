"""
Stroke geometry source for HanziWriter (makemeahanzi) character data.

Geometry is looked up in memory, then in the on-disk cache, then fetched from
the hanzi-writer-data CDN packages. The disk cache avoids client-side
CDN/adblock/CORS issues when served through /api/strokes.
"""
import json
import logging
import ssl
import threading
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any, Dict, List, Optional

import certifi

from hanzi_learning import config
from hanzi_learning.errors import StrokeDataUnavailableError
from hanzi_learning.event_log import log_event


def validate_geometry(data: Any) -> bool:
    """HanziWriter JSON needs non-empty ``strokes`` with one median per stroke."""
    if not isinstance(data, dict):
        return False
    strokes = data.get('strokes')
    medians = data.get('medians')
    if not isinstance(strokes, list) or not strokes:
        return False
    if not isinstance(medians, list) or len(medians) != len(strokes):
        return False
    return all(isinstance(m, list) and len(m) >= 1 for m in medians)


def cache_filename(character: str) -> str:
    return f"{ord(character):x}.json"


class StrokeDataSource:
    """Loads and caches stroke geometry for single characters."""

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        urls: Optional[List[str]] = None,
        timeout: Optional[float] = None,
        verify_ssl: Optional[bool] = None,
        opener=None,
    ):
        self.cache_dir = Path(cache_dir) if cache_dir is not None else config.HANZI_WRITER_CACHE_DIR
        self.urls = list(urls) if urls is not None else config.get_stroke_data_urls()
        self.timeout = timeout if timeout is not None else config.get_stroke_fetch_timeout()
        verify = config.stroke_fetch_verify_ssl() if verify_ssl is None else verify_ssl
        # Use certifi CA bundle to avoid local truststore issues
        self._ssl_context = (
            ssl.create_default_context(cafile=certifi.where()) if verify else ssl._create_unverified_context()
        )
        self._opener = opener or urllib.request.urlopen
        # Probed geometry is memoised; misses are not, so a retry refetches.
        self._memory: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def probe(self, character: str) -> Optional[Dict[str, Any]]:
        """Existence probe: geometry for ``character`` or None when absent."""
        try:
            return self.load(character)
        except StrokeDataUnavailableError:
            return None

    def load(self, character: str) -> Dict[str, Any]:
        if not character or len(character) != 1:
            raise StrokeDataUnavailableError(character or "", "expected exactly one character")

        with self._lock:
            cached = self._memory.get(character)
        if cached is not None:
            return cached

        data = self._read_cache(character)
        if data is None:
            data = self._fetch_remote(character)
            self._write_cache(character, data)

        with self._lock:
            self._memory[character] = data
        return data

    def forget(self, character: str) -> None:
        with self._lock:
            self._memory.pop(character, None)

    def _cache_path(self, character: str) -> Path:
        return self.cache_dir / cache_filename(character)

    def _read_cache(self, character: str) -> Optional[Dict[str, Any]]:
        cache_file = self._cache_path(character)
        if not cache_file.exists():
            return None
        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if validate_geometry(data):
                return data
        except (OSError, ValueError):
            pass
        # If cache is corrupted, fall through to refetch
        try:
            cache_file.unlink()
        except OSError:
            pass
        return None

    def _write_cache(self, character: str, data: Dict[str, Any]) -> None:
        # Cache best-effort (container FS may be ephemeral or read-only)
        cache_file = self._cache_path(character)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(cache_file, 'w', encoding='utf-8', newline='\n') as f:
                json.dump(data, f, ensure_ascii=False)
                f.write('\n')
        except OSError as cache_err:
            log_event("stroke_cache_write_failed", level=logging.WARNING,
                      path=str(cache_file), error=str(cache_err))

    def _fetch_remote(self, character: str) -> Dict[str, Any]:
        encoded = urllib.parse.quote(character)
        transient = False
        last_err: Optional[str] = None
        for template in self.urls:
            url = template.format(char=encoded)
            try:
                req = urllib.request.Request(url, headers={'User-Agent': 'Mozilla/5.0'})
                kwargs = {'timeout': self.timeout}
                if url.startswith('https://'):
                    kwargs['context'] = self._ssl_context
                with self._opener(req, **kwargs) as resp:
                    status = getattr(resp, 'status', 200)
                    if status != 200:
                        raise urllib.error.HTTPError(url, status, f"HTTP {status}", None, None)
                    data = json.loads(resp.read().decode('utf-8'))
            except urllib.error.HTTPError as e:
                if e.code != 404:
                    transient = True
                last_err = f"HTTP {e.code}"
                continue
            except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
                transient = True
                last_err = str(e)
                continue
            if not validate_geometry(data):
                last_err = "invalid stroke data"
                continue
            log_event("stroke_data_fetched", character=character, url=url,
                      strokes=len(data['strokes']))
            return data

        log_event("stroke_data_missing", level=logging.WARNING, character=character,
                  transient=transient, error=last_err)
        reason = "no stroke data" if not transient else f"failed to load stroke data ({last_err})"
        raise StrokeDataUnavailableError(character, reason, transient=transient)
