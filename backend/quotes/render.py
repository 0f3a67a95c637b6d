"""Rendering boundary: turns cached quotes into widget faces."""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Set, Tuple
import logging
import threading

from .cache import QuoteCache
from .models import Quote, WidgetSettings, WidgetSize
from .preferences import Preferences

logger = logging.getLogger(__name__)

POSITIVE_COLOR = "#4CAF50"
NEGATIVE_COLOR = "#F44336"
SYMBOL_PLACEHOLDER = "{SYMBOL}"


@dataclass(frozen=True)
class WidgetFace:
    widget_id: int
    size: str
    symbol_text: str
    price_text: str
    change_text: Optional[str]
    percent_text: str
    change_color: str
    text_color: str
    background: str
    is_placeholder: bool
    launch_app: Optional[str] = None
    launch_url: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def format_change(change: float) -> str:
    """'+$1.23' / '-$1.23'"""
    if change >= 0:
        return f"+${change:.2f}"
    return f"-${abs(change):.2f}"


def format_percent(percent_change: float) -> str:
    """'+1.2%' / '-1.2%'"""
    if percent_change >= 0:
        return f"+{percent_change:.1f}%"
    return f"{percent_change:.1f}%"


def build_launch_url(template: Optional[str], symbol: str) -> Optional[str]:
    """Expand a launch URL template such as 'https://example.com/q/{SYMBOL}'."""
    if not template:
        return None
    return template.replace(SYMBOL_PLACEHOLDER, symbol)


def render_face(quote: Quote, settings: WidgetSettings) -> WidgetFace:
    """Render one widget from a cached (or placeholder) quote."""
    if settings.size is WidgetSize.SMALL:
        price_text = f"${quote.price:.0f}"
        change_text = None
    else:
        price_text = f"${quote.price:.2f}"
        change_text = format_change(quote.change)

    return WidgetFace(
        widget_id=settings.widget_id,
        size=settings.size.value,
        symbol_text=quote.symbol,
        price_text=price_text,
        change_text=change_text,
        percent_text=format_percent(quote.percent_change),
        change_color=POSITIVE_COLOR if quote.change >= 0 else NEGATIVE_COLOR,
        text_color="#FFFFFF" if settings.dark_theme else "#000000",
        background="dark" if settings.dark_theme else "light",
        is_placeholder=quote.is_placeholder,
        launch_app=settings.launch_app,
        launch_url=build_launch_url(settings.launch_url, quote.symbol)
    )


class WidgetBoard:
    """
    The set of widgets currently placed on the home screen.

    Acts as the widget host for the orchestrator: it reports which widget
    ids are live and re-renders every widget from the cache when notified.
    """

    def __init__(self, cache: QuoteCache, preferences: Preferences):
        self.cache = cache
        self.preferences = preferences
        self._live: Set[Tuple[WidgetSize, int]] = set()
        self._faces: Dict[Tuple[WidgetSize, int], WidgetFace] = {}
        self._lock = threading.Lock()
        self.refresh_count = 0
        self._restored = False

    def restore(self) -> int:
        """Mark every widget with stored settings as live and render it."""
        widgets = self.preferences.list_widgets()
        with self._lock:
            self._restored = True
            for widget in widgets:
                self._live.add((widget.size, widget.widget_id))
        self.notify_widgets_to_refresh()
        return len(widgets)

    def add(self, settings: WidgetSettings) -> WidgetFace:
        """Place (or reconfigure) a widget and render it right away."""
        self._ensure_restored()
        stored = self.preferences.configure_widget(settings)
        face = render_face(self.cache.get(stored.symbol), stored)
        with self._lock:
            self._live.add((stored.size, stored.widget_id))
            self._faces[(stored.size, stored.widget_id)] = face
        return face

    def remove(self, widget_id: int, size: WidgetSize) -> bool:
        self._ensure_restored()
        with self._lock:
            key = (size, widget_id)
            existed = key in self._live
            self._live.discard(key)
            self._faces.pop(key, None)
        self.preferences.remove_widget(widget_id, size)
        return existed

    def live_widget_ids(self) -> Dict[WidgetSize, Set[int]]:
        """Placed widget ids per size. Stored widgets count as placed until removed."""
        self._ensure_restored()
        with self._lock:
            live: Dict[WidgetSize, Set[int]] = {size: set() for size in WidgetSize}
            for size, widget_id in self._live:
                live[size].add(widget_id)
            return live

    def notify_widgets_to_refresh(self) -> None:
        """Re-render every live widget from the current cache contents."""
        with self._lock:
            live = sorted(self._live, key=lambda k: (k[0].value, k[1]))

        faces = {}
        for size, widget_id in live:
            settings = self.preferences.get_widget(widget_id, size)
            if settings is None:
                settings = WidgetSettings(widget_id=widget_id, size=size, symbol=size.default_symbol)
            faces[(size, widget_id)] = render_face(self.cache.get(settings.symbol), settings)

        with self._lock:
            self._faces = faces
            self.refresh_count += 1
        logger.debug(f"Refreshed {len(faces)} widget(s)")

    def faces(self) -> List[WidgetFace]:
        with self._lock:
            return [self._faces[key] for key in sorted(self._faces, key=lambda k: (k[0].value, k[1]))]

    def _ensure_restored(self) -> None:
        # Widgets placed by an earlier process are still on the home screen
        if not self._restored:
            self.restore()
