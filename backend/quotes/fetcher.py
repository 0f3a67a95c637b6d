"""Quote lookups against the Finnhub quote endpoint, plus demo data."""

from datetime import datetime
from typing import Callable, Optional
import logging
import math
import random

import requests

from config import Config
from .errors import TransportError, ProviderError, InvalidDataError
from .models import Quote, normalize_symbol, utc_now

logger = logging.getLogger(__name__)


class QuoteFetcher:
    """
    Performs exactly one remote lookup per call.

    Failures are reported as ``FetchError`` subclasses; retrying is left to
    the caller.
    """

    def __init__(
        self,
        base_url: str = None,
        connect_timeout: float = None,
        read_timeout: float = None,
        session: Optional[requests.Session] = None,
        now_fn: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the fetcher.

        Args:
            base_url: Provider API root (defaults to Config.FINNHUB_BASE_URL)
            connect_timeout: Seconds allowed to establish the connection
            read_timeout: Seconds allowed between bytes of the response
            session: Optional requests session (for connection reuse / tests)
            now_fn: Clock used to stamp successful quotes
        """
        self.base_url = (base_url or Config.FINNHUB_BASE_URL).rstrip('/')
        self.connect_timeout = connect_timeout if connect_timeout is not None else Config.HTTP_CONNECT_TIMEOUT
        self.read_timeout = read_timeout if read_timeout is not None else Config.HTTP_READ_TIMEOUT
        self.session = session or requests.Session()
        self._now = now_fn or utc_now

    def fetch(self, symbol: str, credential: str) -> Quote:
        """
        Fetch the current quote for ``symbol``.

        Args:
            symbol: Ticker, e.g. 'AAPL'
            credential: Finnhub API token

        Returns:
            Quote stamped with the current time

        Raises:
            TransportError: network failure, timeout or non-2xx status
            ProviderError: the provider reported an error
            InvalidDataError: missing/non-numeric fields or non-positive price
        """
        symbol = normalize_symbol(symbol)
        url = f"{self.base_url}/quote"

        try:
            response = self.session.get(
                url,
                params={'symbol': symbol},
                headers={'X-Finnhub-Token': credential},
                timeout=(self.connect_timeout, self.read_timeout)
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request for {symbol} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"HTTP {response.status_code} for {symbol}",
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidDataError(f"Response for {symbol} is not JSON") from e

        if not isinstance(payload, dict):
            raise InvalidDataError(f"Unexpected payload type for {symbol}: {type(payload).__name__}")

        if 'error' in payload:
            raise ProviderError(f"API error for {symbol}: {payload['error']}")

        price = _number(payload, 'c', symbol)
        change = _number(payload, 'd', symbol)
        percent_change = _number(payload, 'dp', symbol)

        if price <= 0:
            raise InvalidDataError(f"Invalid price for {symbol}: {price}")

        return Quote(
            symbol=symbol,
            price=price,
            change=change,
            percent_change=percent_change,
            last_updated=self._now()
        )

    def check_credential(self, credential: str, symbol: str = None) -> Quote:
        """Verify an API key by fetching one well-known symbol."""
        return self.fetch(symbol or Config.CREDENTIAL_CHECK_SYMBOL, credential)


def _number(payload: dict, key: str, symbol: str) -> float:
    value = payload.get(key)
    # bool is an int subclass but never a valid price field
    if value is None or isinstance(value, bool):
        raise InvalidDataError(f"Missing '{key}' for {symbol}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidDataError(f"Non-numeric '{key}' for {symbol}: {value!r}") from e
    if not math.isfinite(number):
        raise InvalidDataError(f"Non-finite '{key}' for {symbol}: {value!r}")
    return number


def synthesize_quote(
    symbol: str,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> Quote:
    """
    Generate a plausible demo quote for ``symbol``.

    Known tickers start from a fixed base price; anything else gets a random
    base in Config.SYNTHETIC_FALLBACK_RANGE. The change is uniform within
    +/- Config.SYNTHETIC_MAX_CHANGE.
    """
    symbol = normalize_symbol(symbol)
    rng = rng or random.Random()

    base_price = None
    for ticker, price in Config.SYNTHETIC_BASE_PRICES.items():
        if ticker in symbol:
            base_price = price
            break
    if base_price is None:
        low, high = Config.SYNTHETIC_FALLBACK_RANGE
        base_price = low + rng.random() * (high - low)

    change = (rng.random() - 0.5) * 2 * Config.SYNTHETIC_MAX_CHANGE
    percent_change = change / base_price * 100

    return Quote(
        symbol=symbol,
        price=base_price + change,
        change=change,
        percent_change=percent_change,
        last_updated=now or utc_now()
    )
