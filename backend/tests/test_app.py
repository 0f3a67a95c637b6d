"""
Tests for the Flask API.

Run with: python -m pytest tests/test_app.py
From the backend directory.
"""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timezone

import pytest

import app as app_module
from config import Config
from quotes.errors import ProviderError
from quotes.models import Quote, WidgetSize

NOW = datetime(2024, 7, 8, 15, 0, tzinfo=timezone.utc)


class FakeFetcher:
    """Never touches the network."""

    def __init__(self):
        self.calls = []

    def fetch(self, symbol, credential):
        self.calls.append(symbol)
        return Quote(symbol, 101.0, 1.0, 1.0, NOW)

    def check_credential(self, credential, symbol=None):
        if credential == 'bad-key':
            raise ProviderError("Invalid API key.")
        return Quote(symbol or Config.CREDENTIAL_CHECK_SYMBOL, 512.0, 2.0, 0.39, NOW)


@pytest.fixture
def service(tmp_path):
    service = app_module.init_service(
        tmp_path / 'quotes.db', start_scheduler=False, fetcher=FakeFetcher()
    )
    # Synthetic mode, regardless of the environment
    service.preferences.set_credential('')
    yield service
    service.scheduler.wait_idle(5)
    service.stop()


@pytest.fixture
def client(service):
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client


def test_health(client):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'healthy'}


def test_add_widget_triggers_refresh(client, service):
    response = client.post('/api/widgets', json={'widget_id': 1, 'symbol': 'spy'})

    assert response.status_code == 201
    widget = response.get_json()['widget']
    assert widget['symbol_text'] == 'SPY'
    assert widget['size'] == 'normal'

    assert service.scheduler.wait_idle(5)
    data = client.get('/api/widgets').get_json()
    faces = data['widgets']
    assert data['settings'][0]['symbol'] == 'SPY'
    assert len(faces) == 1
    assert faces[0]['is_placeholder'] is False
    assert service.cache.has_real_data('SPY')


def test_add_widget_uses_size_default_symbol(client):
    response = client.post('/api/widgets', json={'widget_id': 2, 'size': 'small'})

    assert response.status_code == 201
    assert response.get_json()['widget']['symbol_text'] == 'SPY'


@pytest.mark.parametrize('payload', [
    {},
    {'widget_id': 'abc'},
    {'widget_id': 1, 'size': 'huge'},
    {'widget_id': 1, 'symbol': '   '},
    {'widget_id': 1, 'symbol': 123},
    {'widget_id': 1, 'launch_url': ['https://x.test']},
    {'widget_id': 1, 'dark_theme': 'maybe'},
])
def test_add_widget_rejects_bad_input(client, payload):
    response = client.post('/api/widgets', json=payload)

    assert response.status_code == 400
    assert 'error' in response.get_json()


def test_remove_widget(client, service):
    client.post('/api/widgets', json={'widget_id': 5, 'symbol': 'TSLA'})
    service.scheduler.wait_idle(5)

    response = client.delete('/api/widgets/normal/5')
    assert response.status_code == 200
    assert service.preferences.get_tracked_symbols() == []

    assert client.delete('/api/widgets/normal/5').status_code == 404
    assert client.delete('/api/widgets/huge/5').status_code == 400


def test_settings_never_return_key(client, service):
    service.preferences.set_credential('secret')

    data = client.get('/api/settings').get_json()

    assert data['api_key_set'] is True
    assert 'secret' not in str(data)
    assert data['min_update_interval'] == Config.MIN_UPDATE_INTERVAL_MINUTES


def test_update_settings(client, service):
    response = client.put('/api/settings', json={'update_interval': 30, 'api_key': ''})

    assert response.status_code == 200
    assert response.get_json()['update_interval'] == 30
    assert response.get_json()['api_key_set'] is False
    assert service.preferences.get_refresh_interval_minutes() == 30


@pytest.mark.parametrize('interval', [5, 'often'])
def test_update_settings_rejects_bad_interval(client, service, interval):
    response = client.put('/api/settings', json={'update_interval': interval})

    assert response.status_code == 400
    assert service.preferences.get_refresh_interval_minutes() == Config.UPDATE_INTERVAL_MINUTES


def test_test_key(client):
    response = client.post('/api/settings/test_key', json={'api_key': 'good-key'})

    assert response.status_code == 200
    data = response.get_json()
    assert data['ok'] is True
    assert data['quote']['symbol'] == Config.CREDENTIAL_CHECK_SYMBOL


def test_test_key_failure(client):
    response = client.post('/api/settings/test_key', json={'api_key': 'bad-key'})

    assert response.status_code == 502
    assert response.get_json()['ok'] is False


def test_test_key_requires_a_key(client):
    response = client.post('/api/settings/test_key', json={})

    assert response.status_code == 400


def test_refresh_and_status(client, service):
    client.post('/api/widgets', json={'widget_id': 1, 'symbol': 'AAPL'})
    service.scheduler.wait_idle(5)

    response = client.post('/api/refresh')
    assert response.status_code == 202
    assert service.scheduler.wait_idle(5)

    data = client.get('/api/status').get_json()
    assert data['tracked_symbols'] == ['AAPL']
    assert data['cached_symbols'] == ['AAPL']
    assert data['quotes']['AAPL']['last_updated'] is not None
    assert data['update_status']['last_attempt'] is not None
    assert data['update_status']['last_widget_push'] is not None
    assert data['scheduler']['last_error'] is None
    assert data['scheduler']['last_report']['synthetic'] is True


def test_string_false_selects_light_theme(client, service):
    response = client.post('/api/widgets', json={'widget_id': 3, 'symbol': 'AAPL', 'dark_theme': 'false'})

    assert response.status_code == 201
    assert response.get_json()['widget']['background'] == 'light'
    assert service.preferences.get_widget(3, WidgetSize.NORMAL).dark_theme is False


def test_non_string_api_key_is_rejected(client, service):
    service.preferences.set_credential('stored-key')

    response = client.put('/api/settings', json={'api_key': 123, 'update_interval': 30})

    assert response.status_code == 400
    assert service.preferences.get_credential() == 'stored-key'
    # Nothing is written when part of the request is invalid
    assert service.preferences.get_refresh_interval_minutes() == Config.UPDATE_INTERVAL_MINUTES

    assert client.post('/api/settings/test_key', json={'api_key': 123}).status_code == 400
