"""Update status log: last attempt, last API success, last widget push."""

from datetime import datetime
import logging
import threading

from .models import UpdateStatus, parse_timestamp
from .preferences import APP_PREFS, Preferences

logger = logging.getLogger(__name__)

LAST_ATTEMPT_PREF = "last_update_attempt"
LAST_SUCCESS_PREF = "last_successful_update"
LAST_WIDGET_PUSH_PREF = "last_widget_update"


class StatusLog:
    """Timestamps written by the orchestrator; never move backwards."""

    def __init__(self, preferences: Preferences):
        self.preferences = preferences
        self._lock = threading.Lock()

    def record_attempt(self, when: datetime) -> None:
        self._advance(LAST_ATTEMPT_PREF, when)

    def record_success(self, when: datetime) -> None:
        self._advance(LAST_SUCCESS_PREF, when)

    def record_widget_push(self, when: datetime) -> None:
        self._advance(LAST_WIDGET_PUSH_PREF, when)

    def read(self) -> UpdateStatus:
        return UpdateStatus(
            last_attempt=self._read(LAST_ATTEMPT_PREF),
            last_success=self._read(LAST_SUCCESS_PREF),
            last_widget_push=self._read(LAST_WIDGET_PUSH_PREF)
        )

    def _read(self, key: str):
        raw = self.preferences.get(APP_PREFS, key)
        try:
            return parse_timestamp(raw)
        except ValueError:
            logger.warning(f"Ignoring unreadable status timestamp {key}={raw!r}")
            return None

    def _advance(self, key: str, when: datetime) -> None:
        with self._lock:
            current = self._read(key)
            if current is not None and parse_timestamp(when) < current:
                logger.debug(f"Not moving {key} back from {current} to {when}")
                return
            self.preferences.set(APP_PREFS, key, parse_timestamp(when).isoformat())
