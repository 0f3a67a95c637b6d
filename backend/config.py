import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


def _backend_path(value: str) -> str:
    """Resolve relative paths against the backend directory, not the CWD."""
    path = Path(value).expanduser()
    return str(path if path.is_absolute() else BASE_DIR / path)


class Config:
    FINNHUB_API_KEY = os.getenv('FINNHUB_API_KEY', '')
    FINNHUB_BASE_URL = os.getenv('FINNHUB_BASE_URL', 'https://finnhub.io/api/v1')
    DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Quote cache / preferences storage
    QUOTES_DB_PATH = _backend_path(os.getenv('QUOTES_DB_PATH', 'data/quotes.db'))

    # Update schedule (platform minimum for periodic work is 15 minutes)
    MIN_UPDATE_INTERVAL_MINUTES = 15
    UPDATE_INTERVAL_MINUTES = max(
        int(os.getenv('UPDATE_INTERVAL_MINUTES', '15')),
        MIN_UPDATE_INTERVAL_MINUTES
    )

    # Retry policy for cycles that fail unexpectedly
    RETRY_DELAY_SECONDS = float(os.getenv('RETRY_DELAY_SECONDS', '30'))
    MAX_RETRIES = int(os.getenv('MAX_RETRIES', '3'))

    # HTTP timeouts (seconds)
    HTTP_CONNECT_TIMEOUT = float(os.getenv('HTTP_CONNECT_TIMEOUT', '10'))
    HTTP_READ_TIMEOUT = float(os.getenv('HTTP_READ_TIMEOUT', '10'))

    # Exchange session (local exchange time)
    MARKET_TIMEZONE = os.getenv('MARKET_TIMEZONE', 'America/New_York')
    MARKET_OPEN = (9, 30)
    MARKET_CLOSE = (16, 0)

    # Shown until a symbol has been fetched at least once
    PLACEHOLDER_QUOTE = {
        'price': 150.0,
        'change': 2.45,
        'percent_change': 1.65
    }

    # Demo data used when no API key is configured
    SYNTHETIC_BASE_PRICES = {
        'SPY': 450.0,
        'AAPL': 175.0,
        'TSLA': 250.0,
        'NVDA': 800.0
    }
    SYNTHETIC_FALLBACK_RANGE = (100.0, 500.0)
    SYNTHETIC_MAX_CHANGE = 5.0

    # Symbol used to verify an API key from the settings screen
    CREDENTIAL_CHECK_SYMBOL = 'SPY'
