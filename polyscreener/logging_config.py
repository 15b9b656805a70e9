import logging, json, os
from logging.handlers import RotatingFileHandler
from contextvars import ContextVar

# Context variable for per-request correlation id
REQUEST_ID_CTX: ContextVar[str | None] = ContextVar('request_id', default=None)

LOG_DIR = os.environ.get('LOG_DIR', 'logs')
LOG_FILE = os.path.join(LOG_DIR, 'polyscreener.log')


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        # Attach even if None for uniformity
        record.correlation_id = REQUEST_ID_CTX.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base = {
            'ts': self.formatTime(record, datefmt='%Y-%m-%dT%H:%M:%S%z'),
            'level': record.levelname,
            'msg': record.getMessage(),
            'logger': record.name,
            'correlation_id': getattr(record, 'correlation_id', None),
        }
        event = getattr(record, 'event', None)
        if event:
            base['event'] = event
        if record.exc_info:
            base['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


def setup_logging(level: str | None = None, log_to_file: bool = True):
    root = logging.getLogger()
    root.setLevel((level or os.environ.get('LOG_LEVEL', 'INFO')).upper())
    # Clear existing handlers to avoid duplicate logs in reloads
    root.handlers = []
    use_json = os.environ.get('LOG_FORMAT', '').lower() == 'json'
    if use_json:
        fmt = JsonFormatter()
    else:
        fmt = logging.Formatter('%(asctime)s - %(levelname)s - %(correlation_id)s - %(message)s')
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.addFilter(CorrelationIdFilter())
    root.addHandler(ch)
    # urllib3 retries are noisy at INFO
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    if not log_to_file:
        return
    # Rotating file handler (5 MB, keep 3 backups)
    try:
        os.makedirs(LOG_DIR, exist_ok=True)
        fh = RotatingFileHandler(LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3)
    except OSError:
        root.warning('Could not attach rotating file handler; continuing with console only')
        return
    fh.setFormatter(fmt)
    fh.addFilter(CorrelationIdFilter())
    root.addHandler(fh)


def log_config(config):
    """Log current configuration"""
    logging.info("=== Poly Screener Configuration ===")
    for key, value in config.items():
        if 'KEY' in key and value:
            value = '***'
        logging.info(f"{key}: {value}")
    logging.info("===================================")
