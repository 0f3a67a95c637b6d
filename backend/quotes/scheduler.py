"""Background scheduling of update cycles."""

from datetime import datetime
from typing import Callable, Dict, Optional
import logging
import threading

from config import Config
from .errors import RetryableError
from .orchestrator import CycleReport, UpdateOrchestrator
from .models import utc_now

logger = logging.getLogger(__name__)


class UpdateScheduler:
    """
    Runs orchestrator cycles on a fixed interval and on demand.

    Cycles never overlap: every run holds ``_cycle_lock``. An immediate
    trigger that arrives while a cycle is running is queued and runs once
    that cycle finishes; repeated triggers while one is pending collapse
    into a single forced cycle.
    """

    def __init__(
        self,
        orchestrator: UpdateOrchestrator,
        retry_delay_seconds: float = None,
        max_retries: int = None,
        seconds_per_minute: float = 60.0
    ):
        """
        Initialize scheduler.

        Args:
            orchestrator: Orchestrator whose ``run_cycle`` is invoked
            retry_delay_seconds: First delay after a RetryableError (doubles each retry)
            max_retries: Retries per cycle after a RetryableError
            seconds_per_minute: Length of one interval minute (shortened in tests)
        """
        self.orchestrator = orchestrator
        self.retry_delay_seconds = (
            retry_delay_seconds if retry_delay_seconds is not None else Config.RETRY_DELAY_SECONDS
        )
        self.max_retries = max_retries if max_retries is not None else Config.MAX_RETRIES
        self.seconds_per_minute = seconds_per_minute

        self.interval_minutes: Optional[int] = None
        self.last_report: Optional[CycleReport] = None
        self.last_error: Optional[str] = None
        self.last_run_at: Optional[datetime] = None

        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._forced_pending = False
        self._running = False

        self._recurring_thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._wakeup: Optional[threading.Event] = None
        self._oneshot_thread: Optional[threading.Thread] = None

    # Scheduler interface

    def schedule_recurring(self, interval_minutes: int, run_first: bool = True) -> None:
        """
        Replace any recurring job with one running every ``interval_minutes``.

        Args:
            interval_minutes: Period between cycles (at least the configured minimum)
            run_first: Run a cycle as soon as the job starts instead of after one period
        """
        interval = max(int(interval_minutes), Config.MIN_UPDATE_INTERVAL_MINUTES)
        self.cancel_recurring()

        stop_event = threading.Event()
        wakeup = threading.Event()
        thread = threading.Thread(
            target=self._recurring_loop,
            args=(interval, stop_event, wakeup, run_first),
            name="quote-update-scheduler",
            daemon=True
        )

        with self._state_lock:
            self.interval_minutes = interval
            self._stop_event = stop_event
            self._wakeup = wakeup
            self._recurring_thread = thread
            # A trigger queued before scheduling is picked up by the loop
            if self._forced_pending:
                wakeup.set()

        thread.start()
        logger.info(f"Scheduled quote updates every {interval} min")

    def cancel_recurring(self, timeout: float = 5.0) -> None:
        """Stop the recurring job (a cycle in progress is allowed to finish)."""
        with self._state_lock:
            thread = self._recurring_thread
            stop_event = self._stop_event
            wakeup = self._wakeup
            self._recurring_thread = None
            self._stop_event = None
            self._wakeup = None
            self.interval_minutes = None

        if thread is None:
            return

        stop_event.set()
        wakeup.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Cancelled recurring quote updates")

    def trigger_immediate(self) -> None:
        """Queue one forced cycle, bypassing the market-hours gate."""
        with self._state_lock:
            self._forced_pending = True
            recurring = self._recurring_thread
            if recurring is not None and recurring.is_alive():
                self._wakeup.set()
                logger.info("Triggered immediate update")
                return

            if self._oneshot_thread is not None:
                logger.info("Immediate update already queued")
                return

            self._oneshot_thread = threading.Thread(
                target=self._drain_forced,
                name="quote-update-immediate",
                daemon=True
            )
            self._oneshot_thread.start()
        logger.info("Triggered immediate update")

    def run_now(self, forced: bool = False) -> CycleReport:
        """
        Run one cycle synchronously, waiting for any cycle in progress.

        Raises:
            RetryableError: the cycle failed unexpectedly (no retry here)
        """
        with self._cycle_lock:
            return self._execute(forced)

    def is_running(self) -> bool:
        return self._running

    def wait_idle(self, timeout: float = None) -> bool:
        """Block until queued work is done. Returns False on timeout."""
        with self._state_lock:
            oneshot = self._oneshot_thread
        if oneshot is not None:
            oneshot.join(timeout)
            if oneshot.is_alive():
                return False
        acquired = self._cycle_lock.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._cycle_lock.release()
        return acquired

    def status(self) -> Dict:
        """Scheduler state for diagnostics."""
        with self._state_lock:
            recurring = self._recurring_thread is not None and self._recurring_thread.is_alive()
            pending = self._forced_pending
        return {
            'recurring': recurring,
            'interval_minutes': self.interval_minutes,
            'running': self._running,
            'immediate_pending': pending,
            'last_run_at': self.last_run_at.isoformat() if self.last_run_at else None,
            'last_error': self.last_error,
            'last_report': self.last_report.to_dict() if self.last_report else None
        }

    # Internals

    def _take_forced(self) -> bool:
        with self._state_lock:
            forced = self._forced_pending
            self._forced_pending = False
            return forced

    def _recurring_loop(
        self,
        interval_minutes: int,
        stop_event: threading.Event,
        wakeup: threading.Event,
        run_first: bool
    ) -> None:
        period = interval_minutes * self.seconds_per_minute
        wait_first = not run_first
        while not stop_event.is_set():
            if wait_first:
                wakeup.wait(timeout=period)
                wakeup.clear()
                if stop_event.is_set():
                    break
            wait_first = True
            forced = self._take_forced()
            self._run_with_retry(forced, stop_event)

    def _drain_forced(self) -> None:
        while True:
            with self._state_lock:
                if not self._forced_pending:
                    self._oneshot_thread = None
                    return
            # Claimed only once the cycle lock is held so triggers queued meanwhile coalesce
            self._run_with_retry(True, None, claim=self._take_forced)

    def _run_with_retry(
        self,
        forced: bool,
        stop_event: Optional[threading.Event],
        claim: Optional[Callable[[], bool]] = None
    ) -> Optional[CycleReport]:
        """
        Run a cycle, retrying with exponential backoff after RetryableError.

        Args:
            forced: Bypass the market-hours gate
            stop_event: Aborts the backoff wait when set
            claim: Called under the cycle lock before the first attempt;
                returning False cancels the run
        """
        delay = self.retry_delay_seconds
        attempt = 0
        while True:
            try:
                with self._cycle_lock:
                    if claim is not None:
                        if not claim():
                            return None
                        claim = None
                    return self._execute(forced)
            except RetryableError as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"Giving up on update cycle after {self.max_retries} retries: {e}")
                    return None
                logger.warning(f"Update cycle failed, retrying in {delay:.0f}s ({attempt}/{self.max_retries})")
                waiter = stop_event or threading.Event()
                if waiter.wait(timeout=delay):
                    return None
                delay *= 2

    def _execute(self, forced: bool) -> CycleReport:
        self._running = True
        try:
            report = self.orchestrator.run_cycle(forced=forced)
        except RetryableError as e:
            self.last_error = str(e)
            raise
        finally:
            self._running = False
            self.last_run_at = utc_now()

        self.last_error = None
        self.last_report = report
        return report
