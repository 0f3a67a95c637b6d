"""Wires the cache, preferences, fetcher, orchestrator and scheduler together."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import logging

from config import Config
from .cache import QuoteCache
from .fetcher import QuoteFetcher
from .orchestrator import UpdateOrchestrator
from .preferences import Preferences
from .render import WidgetBoard
from .scheduler import UpdateScheduler
from .status import StatusLog
from .store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class QuoteService:
    cache: QuoteCache
    preferences: Preferences
    status_log: StatusLog
    board: WidgetBoard
    fetcher: QuoteFetcher
    orchestrator: UpdateOrchestrator
    scheduler: UpdateScheduler

    def start(self) -> None:
        """Restore placed widgets from settings and start the recurring job (first cycle runs right away)."""
        restored = self.board.restore()
        logger.info(f"Restored {restored} widget(s) from settings")
        self.scheduler.schedule_recurring(self.preferences.get_refresh_interval_minutes())

    def stop(self) -> None:
        self.scheduler.cancel_recurring()


def build_service(
    db_path: Union[str, Path, None] = None,
    fetcher: Optional[QuoteFetcher] = None,
    persistent: bool = True
) -> QuoteService:
    """
    Build the full update stack on one SQLite database.

    Args:
        db_path: Database file (defaults to Config.QUOTES_DB_PATH)
        fetcher: Fetcher override (tests)
        persistent: Persist the quote cache (False = in-memory cache)

    Returns:
        QuoteService with every component connected
    """
    if db_path is None:
        db_path = Config.QUOTES_DB_PATH

    cache = QuoteCache(store=SnapshotStore(db_path) if persistent else None)
    preferences = Preferences(db_path)
    status_log = StatusLog(preferences)
    board = WidgetBoard(cache, preferences)
    fetcher = fetcher or QuoteFetcher()
    orchestrator = UpdateOrchestrator(
        cache=cache,
        fetcher=fetcher,
        preferences=preferences,
        status_log=status_log,
        widget_host=board
    )
    scheduler = UpdateScheduler(orchestrator)

    return QuoteService(
        cache=cache,
        preferences=preferences,
        status_log=status_log,
        board=board,
        fetcher=fetcher,
        orchestrator=orchestrator,
        scheduler=scheduler
    )
