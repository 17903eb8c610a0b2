"""
Flask backend: character generation, stroke data proxy, health check.
"""
import logging
import time
import uuid

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from hanzi_learning import config
from hanzi_learning.character_service import CharacterDataService
from hanzi_learning.errors import ServiceUnavailableError, StrokeDataUnavailableError, ValidationError
from hanzi_learning.event_log import log_event, setup_logging
from hanzi_learning.stroke_data import StrokeDataSource

setup_logging()

app = Flask(__name__)

# Allow the configured frontend origins plus any localhost port for development
CORS_ORIGINS = config.get_cors_origins()
CORS(app, origins=CORS_ORIGINS + [r'http://localhost:\d+', r'http://127\.0\.0\.1:\d+'])

character_service = CharacterDataService()
stroke_source = StrokeDataSource()


@app.before_request
def _before_request():
    g._start_time = time.time()
    g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())


@app.after_request
def _after_request(response):
    latency_ms = int((time.time() - getattr(g, "_start_time", time.time())) * 1000)
    log_event(
        "http_request",
        request_id=getattr(g, "request_id", None),
        method=request.method,
        path=request.path,
        status=response.status_code,
        latency_ms=latency_ms,
    )
    response.headers["X-Request-Id"] = getattr(g, "request_id", "")
    return response


@app.route('/api/generate', methods=['POST'])
def generate():
    """Convert a word to Chinese character records"""
    data = request.get_json(silent=True) or {}
    word = data.get('word') if isinstance(data, dict) else None
    if not isinstance(word, str) or not word.strip():
        return jsonify({'error': 'Word is required'}), 400

    log_event("generate_requested", request_id=getattr(g, "request_id", None), word=word.strip())
    try:
        result = character_service.lookup(word)
    except ValidationError:
        return jsonify({'error': 'Word is required'}), 400
    except ServiceUnavailableError as e:
        log_event("generate_failed", level=logging.ERROR,
                  request_id=getattr(g, "request_id", None), error=str(e))
        if not character_service.is_configured():
            return jsonify({'error': 'Character service is not configured'}), 500
        return jsonify({'error': 'Failed to generate Chinese characters'}), 500
    return jsonify(result.to_payload())


@app.route('/api/strokes', methods=['GET'])
def get_strokes():
    """
    Proxy HanziWriter stroke JSON (makemeahanzi) through our backend.
    This avoids client-side CDN/adblock/CORS issues and caches locally.
    """
    ch = request.args.get('char', '').strip()
    if not ch or len(ch) != 1:
        return jsonify({'error': 'Please provide exactly one character via ?char='}), 400

    try:
        data = stroke_source.load(ch)
    except StrokeDataUnavailableError as e:
        status = 502 if e.transient else 404
        return jsonify({'error': f'Failed to load stroke data for {ch}: {e.reason}'}), status
    return jsonify(data)


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint"""
    return jsonify({
        'status': 'ok',
        'openai_configured': character_service.is_configured(),
        'stroke_cache_dir': str(stroke_source.cache_dir),
    })


def main() -> None:
    port = config.get_port()
    host = '0.0.0.0'
    log_event("server_starting", host=host, port=port, model=character_service.model)
    # NOTE: Werkzeug's debugger is off unless FLASK_DEBUG=1
    app.run(debug=config.debug_enabled(), host=host, port=port)


if __name__ == '__main__':
    main()
