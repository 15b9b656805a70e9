import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in {'1', 'true', 'yes'}


# Dynamic Configuration with Environment Variables and Defaults
CONFIG = {
    'PRICE_SOURCE': os.environ.get('PRICE_SOURCE', 'chainlink'),  # chainlink | coingecko
    'PRICE_RPC_URL': os.environ.get('PRICE_RPC_URL', ''),  # overrides the Alchemy URL when set
    'ALCHEMY_API_KEY': os.environ.get('ALCHEMY_API_KEY', ''),
    'COINGECKO_BASE': os.environ.get('COINGECKO_BASE', 'https://api.coingecko.com/api/v3'),
    'PRICE_CACHE_TTL': float(os.environ.get('PRICE_CACHE_TTL', 10)),  # Serve cached prices for 10 seconds
    'FETCH_INTERVAL': float(os.environ.get('FETCH_INTERVAL', 15)),  # Poll upstream every 15 seconds
    'API_TIMEOUT_CONNECT': int(os.environ.get('API_TIMEOUT_CONNECT', 5)),
    'API_TIMEOUT_READ': int(os.environ.get('API_TIMEOUT_READ', 10)),
    'PRICE_FETCH_REQUEST_RETRIES': int(os.environ.get('PRICE_FETCH_REQUEST_RETRIES', 3)),
    'PRICE_FETCH_RETRY_BACKOFF': float(os.environ.get('PRICE_FETCH_RETRY_BACKOFF', 0.5)),
    'REFERENCE_TZ': os.environ.get('REFERENCE_TZ', 'America/New_York'),
    'STATE_DB_PATH': os.environ.get(
        'STATE_DB_PATH', os.path.join(os.path.dirname(__file__), 'data', 'state.sqlite')
    ),
    'PORT': int(os.environ.get('PORT', 5001)),  # Default port
    'HOST': os.environ.get('HOST', '0.0.0.0'),  # Default host
    'DEBUG': _env_bool('DEBUG', 'false'),
    'CORS_ALLOWED_ORIGINS': os.environ.get('CORS_ALLOWED_ORIGINS', '*'),
    'ENABLE_POLLER': _env_bool('ENABLE_POLLER', 'true'),  # Background fetch + countdown loops
}


def rpc_url(config=None) -> str:
    """Return the JSON-RPC endpoint used for on-chain price reads."""
    cfg = CONFIG if config is None else config
    if cfg.get('PRICE_RPC_URL'):
        return cfg['PRICE_RPC_URL']
    return f"https://polygon-mainnet.g.alchemy.com/v2/{cfg.get('ALCHEMY_API_KEY', '')}"
