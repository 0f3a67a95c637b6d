"""In-memory quote cache with optional snapshot persistence."""

from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Set
import logging
import threading

from .errors import PersistenceError
from .models import Quote, normalize_symbol, utc_now
from .store import SnapshotStore

logger = logging.getLogger(__name__)


class QuoteCache:
    """
    Last-known quote per symbol.

    Works in one of two modes, picked at construction:
    - in-memory only (``store=None``)
    - persisted, where every mutation rewrites the whole snapshot in ``store``

    Readers always get something back: symbols that were never fetched
    resolve to a placeholder quote whose ``last_updated`` is None.
    Persistence failures are logged and swallowed so the in-memory map keeps
    serving the last known good data.
    """

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        now_fn: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the cache.

        Args:
            store: Snapshot store for the persisted mode (None = in-memory)
            now_fn: Clock used for the snapshot ``saved_at`` stamp
        """
        self.store = store
        self._now = now_fn or utc_now
        self._entries: Dict[str, Quote] = {}
        self._lock = threading.RLock()
        self._loaded = False

    @property
    def persistent(self) -> bool:
        return self.store is not None

    def get(self, symbol: str) -> Quote:
        """Return the cached quote for ``symbol`` or the placeholder quote."""
        symbol = normalize_symbol(symbol)
        with self._lock:
            self._ensure_loaded()
            quote = self._entries.get(symbol)
        return quote if quote is not None else Quote.placeholder(symbol)

    def put(self, symbol: str, quote: Quote) -> None:
        """Insert or overwrite the quote for ``symbol`` and persist."""
        self.put_many({symbol: quote})

    def put_many(self, quotes: Dict[str, Quote]) -> None:
        """Insert or overwrite several quotes with a single snapshot write."""
        if not quotes:
            return
        with self._lock:
            self._ensure_loaded()
            for symbol, quote in quotes.items():
                symbol = normalize_symbol(symbol)
                self._entries[symbol] = quote.with_symbol(symbol)
            self.save()

    def has_real_data(self, symbol: str) -> bool:
        """True if a stored entry exists and came from an actual fetch."""
        symbol = normalize_symbol(symbol)
        with self._lock:
            self._ensure_loaded()
            quote = self._entries.get(symbol)
        return quote is not None and quote.last_updated is not None

    def all_symbols(self) -> Set[str]:
        with self._lock:
            self._ensure_loaded()
            return set(self._entries)

    def snapshot(self) -> Dict[str, Quote]:
        """Copy of the current symbol -> quote map."""
        with self._lock:
            self._ensure_loaded()
            return dict(self._entries)

    def evict(self, keep_symbols: Iterable[str]) -> int:
        """
        Drop every entry whose symbol is not in ``keep_symbols``.

        Args:
            keep_symbols: Symbols that are still tracked

        Returns:
            Number of entries removed (0 means nothing was persisted)
        """
        keep = {normalize_symbol(s) for s in keep_symbols}
        with self._lock:
            self._ensure_loaded()
            stale = [symbol for symbol in self._entries if symbol not in keep]
            for symbol in stale:
                del self._entries[symbol]
            if stale:
                logger.info(f"Evicted {len(stale)} untracked symbol(s): {sorted(stale)}")
                self.save()
        return len(stale)

    def load(self) -> int:
        """
        Replace the in-memory map with the persisted snapshot.

        A corrupted payload empties the cache instead of raising. A missing
        snapshot is a cold start and leaves the cache empty.

        Returns:
            Number of entries loaded
        """
        if self.store is None:
            return 0

        with self._lock:
            self._loaded = True
            try:
                document = self.store.read()
            except PersistenceError as e:
                logger.error(f"Quote cache load failed, keeping in-memory data: {e}")
                return len(self._entries)
            except ValueError as e:
                logger.warning(f"Quote snapshot is corrupted, starting empty: {e}")
                self._entries.clear()
                return 0

            if document is None:
                logger.debug("No quote snapshot stored yet")
                return len(self._entries)

            try:
                entries = {}
                for symbol, data in document['entries'].items():
                    quote = Quote.from_dict(data)
                    entries[normalize_symbol(symbol)] = quote
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Quote snapshot is corrupted, starting empty: {e}")
                self._entries.clear()
                return 0

            self._entries = entries
            logger.info(f"Loaded {len(entries)} cached quote(s) saved at {document.get('saved_at')}")
            return len(entries)

    def save(self) -> bool:
        """
        Write the whole map to the attached store.

        Returns:
            True if the snapshot was written
        """
        if self.store is None:
            return False

        with self._lock:
            entries = {symbol: quote.to_dict() for symbol, quote in self._entries.items()}
            try:
                self.store.write(entries, self._now())
            except PersistenceError as e:
                logger.error(f"Quote cache save failed, continuing with in-memory data: {e}")
                return False
        return True

    def _ensure_loaded(self) -> None:
        # Cold start: pull the persisted snapshot on first access
        if self.store is not None and not self._loaded and not self._entries:
            self.load()
