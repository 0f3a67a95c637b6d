"""Update cycle: gate, fetch, reconcile into the cache, propagate to widgets."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging
import random

from config import Config
from .cache import QuoteCache
from .errors import FetchError, RetryableError
from .fetcher import QuoteFetcher, synthesize_quote
from .market_hours import close_buffer_minutes, is_market_open
from .models import utc_now
from .policy import Propagation, decide_propagation, should_propagate
from .preferences import Preferences
from .status import StatusLog

logger = logging.getLogger(__name__)


class CycleState(Enum):
    IDLE = "idle"
    CHECK_GATE = "check_gate"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    PROPAGATING = "propagating"


@dataclass
class CycleReport:
    """Outcome of one cycle, returned to the scheduler / CLI."""
    forced: bool
    stage: CycleState = CycleState.CHECK_GATE
    skipped_reason: Optional[str] = None
    tracked: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    synthetic: bool = False
    any_success: bool = False
    propagation: Propagation = Propagation.SKIP
    evicted: int = 0

    @property
    def propagated(self) -> bool:
        return should_propagate(self.propagation)

    def to_dict(self) -> dict:
        return {
            'forced': self.forced,
            'stage': self.stage.value,
            'skipped_reason': self.skipped_reason,
            'tracked': self.tracked,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'synthetic': self.synthetic,
            'any_success': self.any_success,
            'propagation': self.propagation.value,
            'evicted': self.evicted
        }


class UpdateOrchestrator:
    """
    Periodic entry point for quote updates.

    Collaborators:
    - cache: QuoteCache receiving fetched quotes
    - fetcher: QuoteFetcher (one attempt per symbol per cycle)
    - preferences: tracked symbols, API key, refresh interval
    - status_log: attempt / success / widget push timestamps
    - widget_host: rendering layer exposing ``notify_widgets_to_refresh()``
      and optionally ``live_widget_ids()``
    """

    def __init__(
        self,
        cache: QuoteCache,
        fetcher: QuoteFetcher,
        preferences: Preferences,
        status_log: StatusLog,
        widget_host=None,
        market_open: Callable[..., bool] = is_market_open,
        market_timezone: str = None,
        now_fn: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.preferences = preferences
        self.status_log = status_log
        self.widget_host = widget_host
        self.market_open = market_open
        self.market_timezone = market_timezone or Config.MARKET_TIMEZONE
        self._now = now_fn or utc_now
        self._rng = rng or random.Random()
        self.state = CycleState.IDLE

    def run_cycle(self, forced: bool = False) -> CycleReport:
        """
        Run one update cycle.

        Per-symbol fetch failures and cache persistence failures are absorbed;
        the cycle still reports success.

        Args:
            forced: Bypass the market-hours gate (manual refresh)

        Returns:
            CycleReport describing what happened

        Raises:
            RetryableError: something unexpected escaped the cycle body
        """
        try:
            return self._run(forced)
        except Exception as e:
            logger.exception(f"Update cycle failed unexpectedly in state {self.state.value}")
            raise RetryableError(f"Update cycle failed: {e}") from e
        finally:
            self.state = CycleState.IDLE

    def _run(self, forced: bool) -> CycleReport:
        report = CycleReport(forced=forced)

        self.state = CycleState.CHECK_GATE
        now = self._now()
        self.status_log.record_attempt(now)

        if not forced:
            buffer = close_buffer_minutes(self.preferences.get_refresh_interval_minutes())
            is_open = self.market_open(now, self.market_timezone, buffer)
            logger.debug(f"Update triggered - forced: {forced}, market open: {is_open}")
            if not is_open:
                logger.info("Outside market hours - skipping update")
                report.skipped_reason = "market_closed"
                return report

        self._prune_stale_widgets()

        tracked = self.preferences.get_tracked_symbols()
        report.tracked = tracked
        report.evicted = self.cache.evict(tracked)

        if not tracked:
            logger.info("No tracked symbols - nothing to update")
            report.skipped_reason = "no_symbols"
            return report

        self.state = CycleState.FETCHING
        report.stage = CycleState.FETCHING
        credential = self.preferences.get_credential()

        if not credential:
            logger.info("No API key configured - using synthetic data")
            self._fill_synthetic(tracked, report)
        else:
            self._fetch_all(tracked, credential, report)

        self.state = CycleState.RECONCILING
        report.stage = CycleState.RECONCILING
        report.any_success = bool(report.succeeded)
        report.propagation = decide_propagation(report.any_success, tracked, self.cache)

        if not report.propagated:
            logger.warning("No widget update - all API calls failed and some symbols have no cached data")
            return report

        self.state = CycleState.PROPAGATING
        report.stage = CycleState.PROPAGATING
        logger.info(
            f"Updating widgets - success: {len(report.succeeded)}, failed: {len(report.failed)}"
        )
        if self.widget_host is not None:
            self.widget_host.notify_widgets_to_refresh()

        pushed_at = self._now()
        self.status_log.record_widget_push(pushed_at)
        if report.any_success:
            self.status_log.record_success(pushed_at)

        return report

    def _fetch_all(self, tracked: List[str], credential: str, report: CycleReport) -> None:
        for symbol in tracked:
            try:
                quote = self.fetcher.fetch(symbol, credential)
            except FetchError as e:
                # Existing cache entry is kept as last known good
                logger.warning(f"Error fetching {symbol}, keeping cached data: {e}")
                report.failed.append(symbol)
                continue

            self.cache.put(symbol, quote)
            report.succeeded.append(symbol)
            logger.debug(f"Updated {symbol}: {quote.price}")

    def _fill_synthetic(self, tracked: List[str], report: CycleReport) -> None:
        now = self._now()
        quotes = {symbol: synthesize_quote(symbol, now, self._rng) for symbol in tracked}
        self.cache.put_many(quotes)
        report.synthetic = True
        report.succeeded.extend(tracked)

    def _prune_stale_widgets(self) -> None:
        live_ids = getattr(self.widget_host, 'live_widget_ids', None)
        if live_ids is None:
            return
        self.preferences.prune_widgets(live_ids())
