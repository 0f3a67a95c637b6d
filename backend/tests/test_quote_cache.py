"""
Tests for the quote cache and its snapshot persistence.

Run with: python -m pytest tests/test_quote_cache.py
From the backend directory.
"""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timezone

from config import Config
from quotes.cache import QuoteCache
from quotes.db import get_connection
from quotes.errors import PersistenceError
from quotes.models import Quote
from quotes.store import SnapshotStore

NOW = datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc)


def _quote(symbol, price=100.0, change=1.5, percent_change=1.52):
    return Quote(symbol, price, change, percent_change, NOW)


class BrokenStore:
    """Store whose every operation fails like a full / locked disk."""

    def read(self):
        raise PersistenceError("disk unavailable")

    def write(self, entries, saved_at):
        raise PersistenceError("disk unavailable")


def test_unknown_symbol_returns_placeholder():
    cache = QuoteCache()
    quote = cache.get('msft')

    assert quote.symbol == 'MSFT'
    assert quote.last_updated is None
    assert quote.is_placeholder
    assert quote.price == Config.PLACEHOLDER_QUOTE['price']
    assert quote.change == Config.PLACEHOLDER_QUOTE['change']
    assert quote.percent_change == Config.PLACEHOLDER_QUOTE['percent_change']
    # Reading a placeholder never creates an entry
    assert cache.all_symbols() == set()


def test_put_marks_real_data():
    cache = QuoteCache()
    assert not cache.has_real_data('AAPL')

    cache.put('aapl', _quote('aapl', price=190.0))

    assert cache.has_real_data('AAPL')
    assert cache.get('AAPL').price == 190.0
    assert cache.get('AAPL').symbol == 'AAPL'
    assert cache.all_symbols() == {'AAPL'}


def test_placeholder_entry_is_not_real_data():
    cache = QuoteCache()
    cache.put('SPY', Quote.placeholder('SPY'))

    assert cache.all_symbols() == {'SPY'}
    assert not cache.has_real_data('SPY')


def test_save_and_load_round_trip(tmp_path):
    db_path = tmp_path / 'quotes.db'
    first = QuoteCache(store=SnapshotStore(db_path))
    first.put('AAPL', _quote('AAPL', price=190.12, change=-1.07, percent_change=-0.5596))
    first.put('SPY', _quote('SPY', price=512.3))

    second = QuoteCache(store=SnapshotStore(db_path))
    loaded = second.load()

    assert loaded == 2
    assert second.snapshot() == first.snapshot()


def test_first_read_loads_persisted_snapshot(tmp_path):
    db_path = tmp_path / 'quotes.db'
    QuoteCache(store=SnapshotStore(db_path)).put('TSLA', _quote('TSLA', price=250.5))

    restarted = QuoteCache(store=SnapshotStore(db_path))

    assert restarted.has_real_data('TSLA')
    assert restarted.get('TSLA').price == 250.5


def test_put_after_restart_keeps_other_persisted_entries(tmp_path):
    db_path = tmp_path / 'quotes.db'
    QuoteCache(store=SnapshotStore(db_path)).put('TSLA', _quote('TSLA'))

    restarted = QuoteCache(store=SnapshotStore(db_path))
    restarted.put('AAPL', _quote('AAPL'))

    reloaded = QuoteCache(store=SnapshotStore(db_path))
    assert reloaded.all_symbols() == {'TSLA', 'AAPL'}


def test_cold_start_without_snapshot_is_empty(tmp_path):
    cache = QuoteCache(store=SnapshotStore(tmp_path / 'quotes.db'))

    assert cache.load() == 0
    assert cache.all_symbols() == set()
    assert cache.get('AAPL').is_placeholder


def test_evict_removes_only_untracked_symbols():
    cache = QuoteCache()
    for symbol in ('AAPL', 'SPY', 'TSLA'):
        cache.put(symbol, _quote(symbol))
    before = cache.snapshot()

    removed = cache.evict({'AAPL', 'spy'})

    assert removed == 1
    assert cache.all_symbols() == {'AAPL', 'SPY'}
    assert cache.get('AAPL') is before['AAPL']
    assert cache.get('SPY') is before['SPY']

    # Second pass with the same keep set is a no-op
    assert cache.evict({'AAPL', 'SPY'}) == 0
    assert cache.all_symbols() == {'AAPL', 'SPY'}


def test_evict_persists_result(tmp_path):
    db_path = tmp_path / 'quotes.db'
    cache = QuoteCache(store=SnapshotStore(db_path))
    cache.put('AAPL', _quote('AAPL'))
    cache.put('NVDA', _quote('NVDA'))

    cache.evict(['AAPL'])

    reloaded = QuoteCache(store=SnapshotStore(db_path))
    assert reloaded.all_symbols() == {'AAPL'}


def test_corrupted_snapshot_clears_cache(tmp_path):
    db_path = tmp_path / 'quotes.db'
    cache = QuoteCache(store=SnapshotStore(db_path))
    cache.put('AAPL', _quote('AAPL'))

    with get_connection(db_path) as conn:
        conn.execute("UPDATE quote_snapshot SET entries = '{not json'")
        conn.commit()

    assert cache.load() == 0
    assert cache.all_symbols() == set()
    assert cache.get('AAPL').is_placeholder


def test_snapshot_with_missing_fields_clears_cache(tmp_path):
    db_path = tmp_path / 'quotes.db'
    cache = QuoteCache(store=SnapshotStore(db_path))
    cache.put('AAPL', _quote('AAPL'))

    with get_connection(db_path) as conn:
        conn.execute("""UPDATE quote_snapshot SET entries = '{"AAPL": {"symbol": "AAPL"}}'""")
        conn.commit()

    fresh = QuoteCache(store=SnapshotStore(db_path))
    assert fresh.load() == 0
    assert fresh.all_symbols() == set()


def test_save_failure_is_swallowed():
    cache = QuoteCache(store=BrokenStore())

    cache.put('AAPL', _quote('AAPL', price=191.0))

    assert cache.save() is False
    assert cache.get('AAPL').price == 191.0
    assert cache.has_real_data('AAPL')


def test_load_failure_keeps_in_memory_entries():
    cache = QuoteCache(store=BrokenStore())
    cache.put('SPY', _quote('SPY'))

    assert cache.load() == 1
    assert cache.has_real_data('SPY')


def test_in_memory_mode_does_not_persist():
    cache = QuoteCache()
    cache.put('AAPL', _quote('AAPL'))

    assert not cache.persistent
    assert cache.save() is False
    assert cache.load() == 0
