from conftest import DEFAULT_PRICES, et
from polyscreener.dashboard import build_dashboard, format_percent, format_price
from polyscreener.models import PriceSnapshot


def test_format_helpers():
    assert format_price(None) == '$0.00'
    assert format_price(0) == '$0.00'
    assert format_price(65000.126) == '$65,000.13'
    assert format_percent(1.234) == '+1.23%'
    assert format_percent(-0.5) == '-0.50%'
    assert format_percent(0.0) == '+0.00%'


def test_dashboard_without_baselines_renders_placeholders(tracker):
    now = et(2024, 1, 10, 14, 37)
    view = build_dashboard(tracker, PriceSnapshot(DEFAULT_PRICES, 1.0), now)
    assert [tf['slug'] for tf in view['timeframes']] == ['15m', '1h', '4h', '1d']
    row = view['timeframes'][0]['rows'][0]
    assert row['symbol'] == 'BTC'
    assert row['change_display'] == '--'
    assert row['change_percent'] is None
    assert row['url'] is None
    assert view['timeframes'][0]['countdown_display'] == '8:00'


def test_dashboard_with_baseline_and_missing_price(tracker):
    now = et(2024, 1, 10, 14, 37)
    tracker.observe(PriceSnapshot(DEFAULT_PRICES, 1.0), now)
    current = PriceSnapshot({'BTC': 66300.0, 'ETH': 3400.0, 'SOL': 150.0}, 2.0)
    view = build_dashboard(tracker, current, now)
    fifteen = view['timeframes'][0]
    assert fifteen['biggest_mover'] == 'BTC'
    btc = fifteen['rows'][0]
    assert btc['change_display'] == '+2.00%'
    assert btc['biggest_mover'] is True
    assert btc['url'].endswith(f"btc-updown-15m-{int(et(2024, 1, 10, 14, 30).timestamp())}")
    assert view['last_update'] == 2.0

    empty = build_dashboard(tracker, None, now)
    assert empty['timeframes'][0]['rows'][0]['current'] == 0.0
    assert empty['timeframes'][0]['rows'][0]['current_display'] == '$0.00'
