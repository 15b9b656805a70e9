import argparse
import logging
import time
import uuid
from typing import Optional

from flask import Flask, current_app, g, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from polyscreener.api_contracts import (
    Countdown,
    DashboardResponse,
    ErrorResponse,
    HealthResponse,
    MetricsResponse,
    Preferences,
    PricesResponse,
)
from polyscreener.config import CONFIG
from polyscreener.dashboard import build_dashboard
from polyscreener.logging_config import REQUEST_ID_CTX, log_config, setup_logging
from polyscreener.poller import Poller
from polyscreener.price_fetch import PriceFetcher
from polyscreener.price_sources import PriceFetchError, get_source
from polyscreener.state_store import KeyValueStore, SqliteStore, load_dark_mode, save_dark_mode
from polyscreener.tracker import WindowTracker
from polyscreener.windows import format_countdown

log = logging.getLogger(__name__)


class Services:
    """Objects shared by the request handlers of one app instance."""

    def __init__(self, fetcher: PriceFetcher, tracker: WindowTracker, store: KeyValueStore, poller: Poller):
        self.fetcher = fetcher
        self.tracker = tracker
        self.store = store
        self.poller = poller
        self.startup_time = time.time()
        self.errors_5xx = 0


def _services() -> Services:
    return current_app.extensions['polyscreener']


def _error(message: str, status: int):
    return jsonify(ErrorResponse(error=message).model_dump()), status


def create_app(config: Optional[dict] = None, fetcher: Optional[PriceFetcher] = None,
               store: Optional[KeyValueStore] = None, tracker: Optional[WindowTracker] = None,
               start_poller: Optional[bool] = None) -> Flask:
    cfg = dict(CONFIG)
    if config:
        cfg.update(config)

    app = Flask(__name__)
    app.config.update(cfg)

    fetcher = fetcher or PriceFetcher()
    store = store if store is not None else SqliteStore(cfg['STATE_DB_PATH'])
    tracker = tracker or WindowTracker(store)
    poller = Poller(fetcher.fetch_prices, tracker, interval=cfg['FETCH_INTERVAL'])
    services = Services(fetcher, tracker, store, poller)
    app.extensions['polyscreener'] = services

    cors_env = cfg['CORS_ALLOWED_ORIGINS']
    cors_origins = '*' if cors_env == '*' else [o.strip() for o in cors_env.split(',') if o.strip()]
    CORS(app, resources={
        r'/api/prices': {'origins': '*', 'methods': ['GET'], 'send_wildcard': True},
        r'/api/*': {'origins': cors_origins},
    })

    @app.before_request
    def _before_request():
        g._start_time = time.time()
        REQUEST_ID_CTX.set(request.headers.get('X-Request-ID') or uuid.uuid4().hex[:12])

    @app.after_request
    def _after_request(resp):
        if 500 <= resp.status_code < 600:
            services.errors_5xx += 1
        started = getattr(g, '_start_time', None)
        if started is not None:
            log.debug('%s %s -> %s in %.1fms', request.method, request.path, resp.status_code,
                      (time.time() - started) * 1000.0)
        rid = REQUEST_ID_CTX.get()
        if rid:
            resp.headers['X-Request-ID'] = rid
        return resp

    @app.route('/api/prices', methods=['GET'])
    def prices():
        try:
            snapshot = _services().fetcher.fetch_prices()
        except PriceFetchError as e:
            return _error(str(e), 502)
        return jsonify(PricesResponse(**snapshot.to_dict()).model_dump())

    @app.route('/api/dashboard', methods=['GET'])
    def dashboard():
        svc = _services()
        if svc.poller.latest is None:
            # No background loop yet (or first tick pending): fetch on demand.
            svc.poller.tick()
        if svc.poller.latest is None:
            return _error(svc.poller.last_error or 'No data available', 503)
        view = build_dashboard(svc.tracker, svc.poller.latest)
        body = DashboardResponse(
            refreshing=svc.poller.refreshing,
            darkMode=load_dark_mode(svc.store),
            **view,
        )
        return jsonify(body.model_dump())

    @app.route('/api/countdowns', methods=['GET'])
    def countdowns():
        svc = _services()
        # The countdown loop refreshes every second while the poller runs.
        seconds = svc.poller.countdowns if svc.poller.running and svc.poller.countdowns else None
        if seconds is None:
            seconds = svc.tracker.countdowns()
        return jsonify({
            slug: Countdown(seconds=s, display=format_countdown(s)).model_dump()
            for slug, s in seconds.items()
        })

    @app.route('/api/preferences', methods=['GET'])
    def get_preferences():
        return jsonify(Preferences(darkMode=load_dark_mode(_services().store)).model_dump())

    @app.route('/api/preferences', methods=['POST'])
    def set_preferences():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _error('JSON object body required', 400)
        try:
            prefs = Preferences(**data)
        except ValidationError as e:
            return _error(f'invalid preferences: {e.errors()[0]["msg"]}', 400)
        save_dark_mode(_services().store, prefs.darkMode)
        log.info('preferences.updated darkMode=%s', prefs.darkMode)
        return jsonify(prefs.model_dump())

    @app.route('/api/health', methods=['GET'])
    def health():
        svc = _services()
        has_snapshot = svc.fetcher.cache.get_any() is not None
        body = HealthResponse(
            status='ok' if has_snapshot else 'degraded',
            uptime_seconds=round(time.time() - svc.startup_time, 2),
            errors_5xx=svc.errors_5xx,
            has_snapshot=has_snapshot,
            last_error=svc.poller.last_error,
        )
        return jsonify(body.model_dump())

    @app.route('/api/metrics', methods=['GET'])
    def metrics():
        svc = _services()
        body = MetricsResponse(
            status='ok',
            uptime_seconds=round(time.time() - svc.startup_time, 2),
            errors_5xx=svc.errors_5xx,
            price_fetch=svc.fetcher.metrics(),
        )
        return jsonify(body.model_dump())

    if cfg['ENABLE_POLLER'] if start_poller is None else start_poller:
        poller.start()

    return app


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description='Poly Screener price proxy and window tracker')
    parser.add_argument('--host', default=CONFIG['HOST'], help='Interface to bind')
    parser.add_argument('--port', type=int, default=CONFIG['PORT'], help='Port to listen on')
    parser.add_argument('--source', choices=['chainlink', 'coingecko'], default=None,
                        help='Upstream price source (overrides PRICE_SOURCE)')
    parser.add_argument('--no-poller', action='store_true', help='Disable background fetch/countdown loops')
    parser.add_argument('--debug', action='store_true', default=CONFIG['DEBUG'])
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)
    setup_logging('DEBUG' if args.debug else None)
    overrides = {'HOST': args.host, 'PORT': args.port, 'DEBUG': args.debug}
    if args.source:
        overrides['PRICE_SOURCE'] = args.source
    log_config({**CONFIG, **overrides})

    fetcher = PriceFetcher(source=get_source(overrides.get('PRICE_SOURCE')))
    app = create_app(overrides, fetcher=fetcher, start_poller=not args.no_poller)
    # The reloader would start a second poller.
    app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False)


if __name__ == '__main__':
    main()
