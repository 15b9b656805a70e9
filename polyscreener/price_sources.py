"""Upstream price sources.

Each source returns a flat ``{symbol: usd_price}`` mapping for the configured
symbols or raises a :class:`PriceFetchError` subclass. Caching and stale
fallback live in :mod:`polyscreener.price_fetch`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from polyscreener.config import CONFIG, rpc_url
from polyscreener.markets import SYMBOLS

log = logging.getLogger(__name__)

# Chainlink aggregator proxies on Polygon mainnet
CHAINLINK_FEEDS = {
    'BTC': '0xc907E116054Ad103354f2D350FD2514433D57F6f',
    'ETH': '0xF9680D99D6C9589e2a93a78A04A279e509205945',
    'SOL': '0x10C8264C0935b3B9870013e057f330Ff3e9C56dC',
}
# 4-byte selectors: latestRoundData() and decimals()
LATEST_ROUND_DATA_SELECTOR = '0xfeaf968c'
DECIMALS_SELECTOR = '0x313ce567'
# decimals() is a uint8 on Chainlink aggregators
MAX_FEED_DECIMALS = 77

COINGECKO_ID_MAP = {
    'BTC': 'bitcoin',
    'ETH': 'ethereum',
    'SOL': 'solana',
}


class PriceFetchError(Exception):
    """Base error for upstream price failures."""


class UpstreamUnavailableError(PriceFetchError):
    """Network failure, non-2xx status or RPC-level error."""


class MalformedResponseError(PriceFetchError):
    """Upstream answered but the payload could not be parsed."""


class PartialSnapshotError(PriceFetchError):
    """At least one configured symbol could not be priced."""


def build_session(retries: Optional[int] = None, backoff: Optional[float] = None) -> requests.Session:
    """Session with retry/backoff to absorb transient connection failures."""
    session = requests.Session()
    retry = Retry(
        total=CONFIG['PRICE_FETCH_REQUEST_RETRIES'] if retries is None else retries,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(['GET', 'POST']),
        backoff_factor=CONFIG['PRICE_FETCH_RETRY_BACKOFF'] if backoff is None else backoff,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount('https://', adapter)
    session.mount('http://', adapter)
    return session


def default_timeout() -> Tuple[int, int]:
    return (CONFIG['API_TIMEOUT_CONNECT'], CONFIG['API_TIMEOUT_READ'])


class PriceSource(ABC):
    """Contract for upstream price providers."""

    name: str = "base"

    def __init__(self, symbols: Iterable[str] = SYMBOLS, session: Optional[requests.Session] = None,
                 timeout: Optional[Tuple[int, int]] = None):
        self.symbols = tuple(symbols)
        self.session = session or build_session()
        self.timeout = timeout or default_timeout()

    @abstractmethod
    def fetch(self) -> Dict[str, float]:
        """Return ``{symbol: price}`` for every configured symbol."""

    def _json(self, resp: requests.Response) -> Any:
        if resp.status_code != 200:
            raise UpstreamUnavailableError(f'{self.name} returned HTTP {resp.status_code}')
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f'{self.name} returned invalid JSON') from e


def _decode_word(hex_data: str, index: int, signed: bool = False) -> int:
    """Decode the ``index``-th 32-byte ABI word of an eth_call result."""
    body = hex_data[2:] if hex_data.startswith('0x') else hex_data
    word = body[index * 64:(index + 1) * 64]
    if len(word) != 64:
        raise MalformedResponseError(f'eth_call result too short for word {index}')
    try:
        value = int(word, 16)
    except ValueError as e:
        raise MalformedResponseError(f'eth_call word {index} is not hex') from e
    if signed and value >= 2 ** 255:
        value -= 2 ** 256
    return value


class ChainlinkPriceSource(PriceSource):
    """Reads Chainlink aggregators with raw ``eth_call`` JSON-RPC requests."""

    name = "chainlink"

    def __init__(self, url: Optional[str] = None, feeds: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.url = url or rpc_url()
        self.feeds = dict(CHAINLINK_FEEDS if feeds is None else feeds)
        self._request_id = 0

    def _eth_call(self, address: str, selector: str) -> str:
        self._request_id += 1
        payload = {
            'jsonrpc': '2.0',
            'id': self._request_id,
            'method': 'eth_call',
            'params': [{'to': address, 'data': selector}, 'latest'],
        }
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        except RequestException as e:
            raise UpstreamUnavailableError(f'rpc request failed: {e}') from e
        body = self._json(resp)
        if not isinstance(body, dict):
            raise MalformedResponseError('rpc response is not an object')
        if body.get('error'):
            raise UpstreamUnavailableError(f"rpc error: {body['error']}")
        result = body.get('result')
        if not isinstance(result, str):
            raise MalformedResponseError('rpc response missing result')
        return result

    def fetch(self) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        for sym in self.symbols:
            address = self.feeds.get(sym)
            if not address:
                raise PartialSnapshotError(f'no Chainlink feed configured for {sym}')
            answer = _decode_word(self._eth_call(address, LATEST_ROUND_DATA_SELECTOR), 1, signed=True)
            decimals = _decode_word(self._eth_call(address, DECIMALS_SELECTOR), 0)
            if decimals > MAX_FEED_DECIMALS:
                raise MalformedResponseError(f'implausible decimals for {sym}: {decimals}')
            prices[sym] = answer / (10 ** decimals)
        return prices


class CoinGeckoPriceSource(PriceSource):
    """CoinGecko ``/simple/price`` keyed by coin ids."""

    name = "coingecko"

    def __init__(self, base_url: Optional[str] = None, ids: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = (base_url or CONFIG['COINGECKO_BASE']).rstrip('/')
        self.ids = dict(COINGECKO_ID_MAP if ids is None else ids)

    def fetch(self) -> Dict[str, float]:
        missing = [s for s in self.symbols if s not in self.ids]
        if missing:
            raise PartialSnapshotError(f'no CoinGecko id for {", ".join(missing)}')
        params = {'ids': ','.join(self.ids[s] for s in self.symbols), 'vs_currencies': 'usd'}
        try:
            resp = self.session.get(f'{self.base_url}/simple/price', params=params, timeout=self.timeout)
        except RequestException as e:
            raise UpstreamUnavailableError(f'coingecko request failed: {e}') from e
        data = self._json(resp)
        if not isinstance(data, dict):
            raise MalformedResponseError('coingecko response is not an object')
        prices: Dict[str, float] = {}
        for sym in self.symbols:
            entry = data.get(self.ids[sym])
            if not isinstance(entry, dict) or 'usd' not in entry:
                raise PartialSnapshotError(f'coingecko has no usd price for {sym}')
            prices[sym] = entry['usd']
        return prices


_SOURCE_REGISTRY: Dict[str, type] = {}


def register_source(cls: type) -> type:
    """Register a source class by its ``name``."""
    _SOURCE_REGISTRY[cls.name] = cls
    return cls


def get_source(name: Optional[str] = None, **kwargs) -> PriceSource:
    """Instantiate a registered source, defaulting to ``CONFIG['PRICE_SOURCE']``."""
    key = (name or CONFIG['PRICE_SOURCE']).lower()
    try:
        cls = _SOURCE_REGISTRY[key]
    except KeyError:
        raise ValueError(f'unknown price source {key!r}; expected one of {sorted(_SOURCE_REGISTRY)}') from None
    return cls(**kwargs)


register_source(ChainlinkPriceSource)
register_source(CoinGeckoPriceSource)

__all__ = [
    'PriceFetchError',
    'UpstreamUnavailableError',
    'MalformedResponseError',
    'PartialSnapshotError',
    'PriceSource',
    'ChainlinkPriceSource',
    'CoinGeckoPriceSource',
    'register_source',
    'get_source',
    'build_session',
]
