import pytest

from conftest import et
from polyscreener.slugs import EVENT_BASE_URL, build_event_slug, build_event_url


def _ts(*args) -> int:
    return int(et(*args).timestamp())


def test_fifteen_minute_slug_uses_unix_seconds():
    url = build_event_url('BTC', '15m', 1700000000)
    assert url == EVENT_BASE_URL + 'btc-updown-15m-1700000000'
    assert 'btc-updown-15m-1700000000' in url


def test_four_hour_slug():
    start = _ts(2024, 1, 10, 12, 0)
    assert build_event_slug('ETH', '4h', start) == f'eth-updown-4h-{start}'


@pytest.mark.parametrize("hour,expected", [
    (14, 'bitcoin-up-or-down-january-10-2pm-et'),
    (0, 'bitcoin-up-or-down-january-10-12am-et'),
    (12, 'bitcoin-up-or-down-january-10-12pm-et'),
    (9, 'bitcoin-up-or-down-january-10-9am-et'),
])
def test_hourly_slug_uses_reference_calendar_fields(hour, expected):
    assert build_event_slug('BTC', '1h', _ts(2024, 1, 10, hour, 0)) == expected


def test_daily_slug_targets_following_day():
    assert build_event_slug('SOL', '1d', _ts(2024, 1, 31, 20, 0)) == 'solana-up-or-down-on-february-1'
    assert build_event_slug('ETH', '1d', _ts(2024, 12, 31, 20, 0)) == 'ethereum-up-or-down-on-january-1'


def test_unknown_symbol_falls_back_to_lowercase_symbol():
    assert build_event_slug('DOGE', '1h', _ts(2024, 7, 4, 18, 0)) == 'doge-up-or-down-july-4-6pm-et'


def test_unrecognised_label_or_missing_window_yields_none():
    assert build_event_url('BTC', '5m', 1700000000) is None
    assert build_event_url('BTC', '15m', None) is None
