import time

import pytest

from conftest import DEFAULT_PRICES, FakeSource, et
from polyscreener.app import create_app, parse_arguments
from polyscreener.price_fetch import PriceCache, PriceFetcher
from polyscreener.price_sources import UpstreamUnavailableError
from polyscreener.state_store import MemoryStore


def _client(source, store=None):
    fetcher = PriceFetcher(source=source, cache=PriceCache(ttl=10))
    app = create_app({'ENABLE_POLLER': False}, fetcher=fetcher, store=store or MemoryStore())
    app.testing = True
    return app.test_client()


@pytest.fixture
def client(source):
    return _client(source)


def test_prices_returns_flat_mapping(client):
    resp = client.get('/api/prices', headers={'Origin': 'https://example.com'})
    assert resp.status_code == 200
    assert resp.get_json() == DEFAULT_PRICES
    assert resp.headers['Access-Control-Allow-Origin'] == '*'
    assert resp.headers.get('X-Request-ID')


def test_prices_is_get_only(client):
    assert client.post('/api/prices').status_code == 405


def test_prices_cold_start_failure_is_error_payload():
    client = _client(FakeSource(UpstreamUnavailableError('rpc down')))
    resp = client.get('/api/prices')
    assert resp.status_code == 502
    assert resp.get_json() == {'error': 'rpc down'}
    health = client.get('/api/health').get_json()
    assert health['status'] == 'degraded'
    assert health['errors_5xx'] == 1


def test_dashboard_fetches_on_demand(client, source):
    resp = client.get('/api/dashboard')
    assert resp.status_code == 200
    body = resp.get_json()
    assert [tf['slug'] for tf in body['timeframes']] == ['15m', '1h', '4h', '1d']
    assert body['darkMode'] is True
    first_row = body['timeframes'][0]['rows'][0]
    assert first_row['symbol'] == 'BTC'
    assert first_row['change_display'] == '+0.00%'
    assert first_row['url'].startswith('https://polymarket.com/event/btc-updown-15m-')
    client.get('/api/dashboard')
    assert source.calls == 1


def test_dashboard_unavailable_before_first_fetch():
    client = _client(FakeSource(UpstreamUnavailableError('rpc down')))
    resp = client.get('/api/dashboard')
    assert resp.status_code == 503
    assert resp.get_json() == {'error': 'rpc down'}


def test_countdowns_follow_running_loop(source):
    client = _client(source)
    poller = client.application.extensions['polyscreener'].poller
    poller.clock = lambda: et(2024, 1, 10, 14, 37)
    poller.start()
    try:
        deadline = time.time() + 5
        while not poller.countdowns and time.time() < deadline:
            time.sleep(0.01)
        body = client.get('/api/countdowns').get_json()
    finally:
        poller.stop()
    assert body['15m'] == {'seconds': 480, 'display': '8:00'}
    assert body['1d']['seconds'] == 5 * 3600 + 23 * 60


def test_countdowns(client):
    body = client.get('/api/countdowns').get_json()
    assert set(body) == {'15m', '1h', '4h', '1d'}
    assert 0 <= body['15m']['seconds'] <= 900
    assert ':' in body['1d']['display']


def test_preferences_round_trip():
    store = MemoryStore()
    client = _client(FakeSource(), store)
    assert client.get('/api/preferences').get_json() == {'darkMode': True}
    resp = client.post('/api/preferences', json={'darkMode': False})
    assert resp.status_code == 200
    assert client.get('/api/preferences').get_json() == {'darkMode': False}
    assert store.get('darkMode') is False


@pytest.mark.parametrize("body", [None, {'darkMode': 'yes'}, {'theme': 'dark'}, [True]])
def test_preferences_rejects_invalid_body(client, body):
    if body is None:
        resp = client.post('/api/preferences', data='not json', content_type='application/json')
    else:
        resp = client.post('/api/preferences', json=body)
    assert resp.status_code == 400
    assert 'error' in resp.get_json()


def test_metrics_report_fetch_counters(client):
    client.get('/api/prices')
    client.get('/api/prices')
    body = client.get('/api/metrics').get_json()
    assert body['status'] == 'ok'
    assert body['price_fetch']['upstream_calls'] == 1
    assert body['price_fetch']['cache_hits'] == 1
    assert body['price_fetch']['source'] == 'fake'


def test_parse_arguments():
    args = parse_arguments(['--port', '6001', '--source', 'coingecko', '--no-poller'])
    assert args.port == 6001
    assert args.source == 'coingecko'
    assert args.no_poller is True
