from flask import Flask, request, jsonify
from flask_cors import CORS
from typing import Optional
import logging

from config import Config
from quotes import FetchError, QuoteService, WidgetSettings, WidgetSize, build_service

logging.basicConfig(level=Config.LOG_LEVEL, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Singleton service instance
_service: Optional[QuoteService] = None


def init_service(db_path: str = None, start_scheduler: bool = True, **kwargs) -> QuoteService:
    """Create the global quote service, replacing (and stopping) any previous one."""
    global _service
    if _service is not None:
        _service.stop()
    _service = build_service(db_path, **kwargs)
    if start_scheduler:
        _service.start()
    else:
        _service.board.restore()
    return _service


def get_service() -> QuoteService:
    """Get or create the global quote service."""
    if _service is None:
        init_service(Config.QUOTES_DB_PATH)
    return _service


def _parse_size(value) -> WidgetSize:
    try:
        return WidgetSize(str(value or 'normal').lower())
    except ValueError:
        raise ValueError(f"Unknown widget size: {value}")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _optional_str(data: dict, field: str) -> Optional[str]:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    return value


def _parse_bool(value, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ValueError(f"{field} must be true or false")


@app.route('/api/widgets', methods=['GET'])
def list_widgets():
    """Rendered faces and stored settings of every placed widget"""
    service = get_service()
    return jsonify({
        'widgets': [face.to_dict() for face in service.board.faces()],
        'settings': [widget.to_dict() for widget in service.preferences.list_widgets()]
    })


@app.route('/api/widgets', methods=['POST'])
def add_widget():
    """Place or reconfigure a widget"""
    data = _json_body()
    try:
        size = _parse_size(data.get('size'))
        widget_id = int(data['widget_id'])
        symbol = _optional_str(data, 'symbol') or size.default_symbol
        settings = WidgetSettings(
            widget_id=widget_id,
            size=size,
            symbol=symbol,
            launch_app=_optional_str(data, 'launch_app') or None,
            launch_url=_optional_str(data, 'launch_url') or None,
            dark_theme=_parse_bool(data.get('dark_theme', True), 'dark_theme')
        )
        face = get_service().board.add(settings)
    except KeyError:
        return jsonify({'error': 'widget_id is required'}), 400
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400

    # New symbols should not wait for the next scheduled cycle
    get_service().scheduler.trigger_immediate()
    return jsonify({'widget': face.to_dict()}), 201


@app.route('/api/widgets/<size>/<int:widget_id>', methods=['DELETE'])
def remove_widget(size, widget_id):
    """Remove a widget and its settings"""
    try:
        widget_size = _parse_size(size)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    removed = get_service().board.remove(widget_id, widget_size)
    if not removed:
        return jsonify({'error': f'No {widget_size.value} widget {widget_id}'}), 404
    return jsonify({'removed': True})


@app.route('/api/settings', methods=['GET'])
def get_settings():
    """Current app settings (the API key itself is never returned)"""
    preferences = get_service().preferences
    return jsonify({
        'api_key_set': bool(preferences.get_credential()),
        'update_interval': preferences.get_refresh_interval_minutes(),
        'min_update_interval': Config.MIN_UPDATE_INTERVAL_MINUTES
    })


@app.route('/api/settings', methods=['PUT'])
def update_settings():
    """Save API key and/or update interval; reschedules updates"""
    data = _json_body()
    service = get_service()

    # Validate everything before writing anything
    try:
        interval = None
        if 'update_interval' in data:
            if isinstance(data['update_interval'], bool):
                raise ValueError("update_interval must be a number of minutes")
            interval = int(data['update_interval'])
            if interval < Config.MIN_UPDATE_INTERVAL_MINUTES:
                raise ValueError(
                    f"Update interval must be at least {Config.MIN_UPDATE_INTERVAL_MINUTES} minutes"
                )
        api_key = _optional_str(data, 'api_key')
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400

    if interval is not None:
        service.preferences.set_refresh_interval_minutes(interval)
    if 'api_key' in data:
        service.preferences.set_credential(api_key or '')

    if service.scheduler.interval_minutes is not None:
        service.scheduler.schedule_recurring(
            service.preferences.get_refresh_interval_minutes(), run_first=False
        )
    service.scheduler.trigger_immediate()

    return get_settings()


@app.route('/api/settings/test_key', methods=['POST'])
def test_api_key():
    """Verify an API key with a single quote lookup"""
    data = _json_body()
    service = get_service()
    try:
        api_key = _optional_str(data, 'api_key') or service.preferences.get_credential()
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    if not api_key:
        return jsonify({'error': 'API key is required'}), 400

    try:
        quote = service.fetcher.check_credential(api_key)
    except FetchError as e:
        logger.warning(f"API key test failed: {e}")
        return jsonify({'ok': False, 'error': str(e)}), 502

    return jsonify({'ok': True, 'quote': quote.to_dict()})


@app.route('/api/refresh', methods=['POST'])
def refresh():
    """Queue an immediate (forced) update cycle"""
    get_service().scheduler.trigger_immediate()
    return jsonify({'status': 'queued'}), 202


@app.route('/api/status', methods=['GET'])
def status():
    """Update status timestamps, scheduler state and cache contents"""
    service = get_service()
    tracked = service.preferences.get_tracked_symbols()
    quotes = {symbol: service.cache.get(symbol).to_dict() for symbol in tracked}

    return jsonify({
        'update_status': service.status_log.read().to_dict(),
        'scheduler': service.scheduler.status(),
        'tracked_symbols': tracked,
        'quotes': quotes,
        'cached_symbols': sorted(service.cache.all_symbols())
    })


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({'status': 'healthy'})


if __name__ == '__main__':
    get_service()
    app.run(debug=Config.DEBUG, port=5000, use_reloader=False)
