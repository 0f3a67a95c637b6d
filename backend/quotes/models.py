"""Value types shared by the cache, fetcher and orchestrator."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from config import Config


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_symbol(symbol: str) -> str:
    """Return the canonical (stripped, upper-case) form of a ticker."""
    if not isinstance(symbol, str):
        raise ValueError(f"Symbol must be a string, got {type(symbol).__name__}")
    normalized = symbol.strip().upper()
    if not normalized:
        raise ValueError("Symbol must be a non-empty string")
    return normalized


def parse_timestamp(value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Quote:
    """
    Price snapshot for one symbol.

    ``last_updated`` is None for placeholder data and a timestamp once the
    quote came from a real (or synthetic) fetch.
    """
    symbol: str
    price: float
    change: float
    percent_change: float
    last_updated: Optional[datetime] = None

    @property
    def is_placeholder(self) -> bool:
        return self.last_updated is None

    @classmethod
    def placeholder(cls, symbol: str) -> 'Quote':
        defaults = Config.PLACEHOLDER_QUOTE
        return cls(
            symbol=symbol,
            price=defaults['price'],
            change=defaults['change'],
            percent_change=defaults['percent_change'],
            last_updated=None
        )

    def with_symbol(self, symbol: str) -> 'Quote':
        return replace(self, symbol=symbol)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'price': self.price,
            'change': self.change,
            'percent_change': self.percent_change,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Quote':
        """Build a quote from its persisted form. Raises on malformed input."""
        return cls(
            symbol=normalize_symbol(data['symbol']),
            price=float(data['price']),
            change=float(data['change']),
            percent_change=float(data['percent_change']),
            last_updated=parse_timestamp(data.get('last_updated'))
        )


class WidgetSize(Enum):
    """Widget variants sharing one update routine."""
    NORMAL = "normal"   # 2x1: price, change and percent
    SMALL = "small"     # 1x1: rounded price and percent

    @property
    def key_prefix(self) -> str:
        return "small_" if self is WidgetSize.SMALL else ""

    @property
    def default_symbol(self) -> str:
        return "SPY" if self is WidgetSize.SMALL else "AAPL"


@dataclass(frozen=True)
class WidgetSettings:
    widget_id: int
    size: WidgetSize
    symbol: str
    launch_app: Optional[str] = None
    launch_url: Optional[str] = None
    dark_theme: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'widget_id': self.widget_id,
            'size': self.size.value,
            'symbol': self.symbol,
            'launch_app': self.launch_app,
            'launch_url': self.launch_url,
            'dark_theme': self.dark_theme
        }


@dataclass(frozen=True)
class UpdateStatus:
    """Timestamps of the last cycle attempt, API success and widget push."""
    last_attempt: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_widget_push: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'last_attempt': self.last_attempt.isoformat() if self.last_attempt else None,
            'last_success': self.last_success.isoformat() if self.last_success else None,
            'last_widget_push': self.last_widget_push.isoformat() if self.last_widget_push else None
        }


