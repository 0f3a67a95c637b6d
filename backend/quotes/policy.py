"""Reconciliation policy: decide whether a cycle should redraw widgets."""

from enum import Enum
from typing import Iterable
import logging

from .cache import QuoteCache

logger = logging.getLogger(__name__)


class Propagation(Enum):
    """What a finished cycle should do with the widgets."""
    PUSH_NEW_DATA = "push"       # At least one fetch succeeded
    REDRAW_CACHED = "redraw"     # Every fetch failed, but all symbols have real cached data
    SKIP = "skip"                # Keep the placeholder display untouched


def decide_propagation(
    any_success: bool,
    tracked_symbols: Iterable[str],
    cache: QuoteCache
) -> Propagation:
    """
    Apply the reconciliation rule after all fetch outcomes are known.

    A cycle where every live fetch failed still refreshes the widgets from
    good cached data, but only if no tracked symbol is still on placeholder
    data; otherwise the widgets are left alone rather than showing a mix.

    Args:
        any_success: True if at least one symbol was fetched successfully
        tracked_symbols: Symbols of the current cycle
        cache: Cache holding the reconciled quotes

    Returns:
        Propagation decision
    """
    if any_success:
        return Propagation.PUSH_NEW_DATA

    missing = [s for s in tracked_symbols if not cache.has_real_data(s)]
    if not missing:
        return Propagation.REDRAW_CACHED

    logger.debug(f"No real data yet for {missing}, skipping widget refresh")
    return Propagation.SKIP


def should_propagate(decision: Propagation) -> bool:
    return decision is not Propagation.SKIP
