"""Configuration storage: app settings and per-widget settings."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union
import logging
import re
import sqlite3
import threading

from config import Config
from .db import get_connection, init_db
from .errors import PersistenceError
from .models import WidgetSettings, WidgetSize, normalize_symbol

logger = logging.getLogger(__name__)

APP_PREFS = "app_prefs"
WIDGET_PREFS = "widget_prefs"

API_KEY_PREF = "finnhub_api_key"
INTERVAL_PREF = "update_interval"

# Keys written for every configured widget, before the "<prefix>" and "_<id>"
WIDGET_FIELDS = ("symbol", "launch_app", "launch_url", "theme")

_WIDGET_KEY_RE = re.compile(r"^(small_)?(symbol|launch_app|launch_url|theme)_(\d+)$")


def _widget_key(field: str, widget_id: int, size: WidgetSize) -> str:
    return f"{size.key_prefix}{field}_{widget_id}"


def _parse_widget_key(key: str) -> Optional[Tuple[WidgetSize, str, int]]:
    match = _WIDGET_KEY_RE.match(key)
    if match is None:
        return None
    size = WidgetSize.SMALL if match.group(1) else WidgetSize.NORMAL
    return size, match.group(2), int(match.group(3))


class Preferences:
    """
    Key/value settings grouped in two namespaces.

    ``app_prefs`` holds the API key, refresh interval and update status
    timestamps; ``widget_prefs`` holds one group of keys per widget
    (``symbol_<id>``, ``launch_app_<id>``, ... with a ``small_`` prefix for
    1x1 widgets). Keys keep the order in which they were first written.
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = db_path
        self._lock = threading.RLock()
        try:
            init_db(db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not initialize preferences: {e}") from e

    # Raw key/value access

    def get(self, namespace: str, key: str, default: Optional[str] = None) -> Optional[str]:
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM preferences WHERE namespace = ? AND key = ?",
                    (namespace, key)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read preference {namespace}/{key}: {e}") from e
        return row['value'] if row is not None else default

    def set(self, namespace: str, key: str, value: Optional[str]) -> None:
        with self._lock:
            try:
                with get_connection(self.db_path) as conn:
                    conn.execute("""
                        INSERT INTO preferences (namespace, key, value, position)
                        VALUES (?, ?, ?, (
                            SELECT COALESCE(MAX(position), 0) + 1
                            FROM preferences WHERE namespace = ?
                        ))
                        ON CONFLICT(namespace, key) DO UPDATE SET value = excluded.value
                    """, (namespace, key, value, namespace))
                    conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(f"Could not write preference {namespace}/{key}: {e}") from e

    def delete(self, namespace: str, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        with self._lock:
            try:
                with get_connection(self.db_path) as conn:
                    cursor = conn.executemany(
                        "DELETE FROM preferences WHERE namespace = ? AND key = ?",
                        [(namespace, key) for key in keys]
                    )
                    removed = cursor.rowcount
                    conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(f"Could not delete preferences in {namespace}: {e}") from e
        return removed

    def items(self, namespace: str) -> List[Tuple[str, Optional[str]]]:
        try:
            with get_connection(self.db_path) as conn:
                rows = conn.execute("""
                    SELECT key, value FROM preferences
                    WHERE namespace = ?
                    ORDER BY position ASC
                """, (namespace,)).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not list preferences in {namespace}: {e}") from e
        return [(row['key'], row['value']) for row in rows]

    # App settings

    def get_credential(self) -> str:
        """Stored API key, or the FINNHUB_API_KEY environment default. May be empty."""
        value = self.get(APP_PREFS, API_KEY_PREF)
        if value is None:
            return Config.FINNHUB_API_KEY or ''
        return value

    def set_credential(self, api_key: Optional[str]) -> None:
        if api_key is not None and not isinstance(api_key, str):
            raise ValueError("API key must be a string")
        self.set(APP_PREFS, API_KEY_PREF, (api_key or '').strip())

    def get_refresh_interval_minutes(self) -> int:
        raw = self.get(APP_PREFS, INTERVAL_PREF)
        if raw is None:
            return Config.UPDATE_INTERVAL_MINUTES
        try:
            minutes = int(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid stored update interval: {raw!r}")
            return Config.UPDATE_INTERVAL_MINUTES
        return max(minutes, Config.MIN_UPDATE_INTERVAL_MINUTES)

    def set_refresh_interval_minutes(self, minutes: int) -> None:
        minutes = int(minutes)
        if minutes < Config.MIN_UPDATE_INTERVAL_MINUTES:
            raise ValueError(
                f"Update interval must be at least {Config.MIN_UPDATE_INTERVAL_MINUTES} minutes"
            )
        self.set(APP_PREFS, INTERVAL_PREF, str(minutes))

    # Widget settings

    def configure_widget(self, settings: WidgetSettings) -> WidgetSettings:
        """Store (or overwrite) the settings of one widget."""
        symbol = normalize_symbol(settings.symbol)
        widget_id, size = settings.widget_id, settings.size

        with self._lock:
            self.set(WIDGET_PREFS, _widget_key("symbol", widget_id, size), symbol)
            self.set(WIDGET_PREFS, _widget_key("theme", widget_id, size),
                     "dark" if settings.dark_theme else "light")

            optional = {"launch_app": settings.launch_app, "launch_url": settings.launch_url}
            for field, value in optional.items():
                key = _widget_key(field, widget_id, size)
                if value:
                    self.set(WIDGET_PREFS, key, value)
                else:
                    self.delete(WIDGET_PREFS, [key])

        logger.info(f"Configured {size.value} widget {widget_id} for {symbol}")
        return self.get_widget(widget_id, size)

    def get_widget(self, widget_id: int, size: WidgetSize) -> Optional[WidgetSettings]:
        symbol = self.get(WIDGET_PREFS, _widget_key("symbol", widget_id, size))
        if not symbol:
            return None
        theme = self.get(WIDGET_PREFS, _widget_key("theme", widget_id, size), "dark")
        return WidgetSettings(
            widget_id=widget_id,
            size=size,
            symbol=symbol,
            launch_app=self.get(WIDGET_PREFS, _widget_key("launch_app", widget_id, size)),
            launch_url=self.get(WIDGET_PREFS, _widget_key("launch_url", widget_id, size)),
            dark_theme=theme != "light"
        )

    def remove_widget(self, widget_id: int, size: WidgetSize) -> int:
        """Delete every key of one widget. Returns the number of keys removed."""
        keys = [_widget_key(field, widget_id, size) for field in WIDGET_FIELDS]
        removed = self.delete(WIDGET_PREFS, keys)
        if removed:
            logger.info(f"Removed settings for {size.value} widget {widget_id}")
        return removed

    def widget_ids(self, size: WidgetSize) -> List[int]:
        ids = []
        for key, _ in self.items(WIDGET_PREFS):
            parsed = _parse_widget_key(key)
            if parsed and parsed[0] is size and parsed[1] == "symbol":
                ids.append(parsed[2])
        return ids

    def list_widgets(self) -> List[WidgetSettings]:
        widgets = []
        for key, _ in self.items(WIDGET_PREFS):
            parsed = _parse_widget_key(key)
            if parsed and parsed[1] == "symbol":
                widget = self.get_widget(parsed[2], parsed[0])
                if widget is not None:
                    widgets.append(widget)
        return widgets

    def get_tracked_symbols(self) -> List[str]:
        """
        Symbols shown by any configured widget.

        Returns:
            Upper-cased symbols without duplicates, in configuration order
        """
        symbols: Dict[str, None] = {}
        for key, value in self.items(WIDGET_PREFS):
            parsed = _parse_widget_key(key)
            if parsed is None or parsed[1] != "symbol" or not value:
                continue
            try:
                symbols[normalize_symbol(value)] = None
            except ValueError:
                logger.warning(f"Ignoring blank symbol stored under {key}")
        return list(symbols)

    def prune_widgets(self, live_ids: Dict[WidgetSize, Set[int]]) -> int:
        """
        Remove the settings of widgets that no longer exist on the host.

        Args:
            live_ids: Widget ids currently placed, per size

        Returns:
            Number of keys removed
        """
        stale_keys = []
        for key, _ in self.items(WIDGET_PREFS):
            parsed = _parse_widget_key(key)
            if parsed is None:
                continue
            size, _, widget_id = parsed
            if widget_id not in live_ids.get(size, set()):
                stale_keys.append(key)

        removed = self.delete(WIDGET_PREFS, stale_keys)
        if removed:
            logger.info(f"Cleaned up {removed} stale widget preference(s)")
        return removed
