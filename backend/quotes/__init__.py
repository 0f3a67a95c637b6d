"""
Quote update subsystem for home-screen stock widgets.

Fetches quotes for the symbols tracked by widgets, keeps a persisted
last-known-good cache and tells the widgets when to redraw.
"""

from .cache import QuoteCache
from .errors import (
    FetchError,
    TransportError,
    ProviderError,
    InvalidDataError,
    PersistenceError,
    RetryableError,
)
from .fetcher import QuoteFetcher, synthesize_quote
from .market_hours import is_market_open, close_buffer_minutes
from .models import Quote, UpdateStatus, WidgetSettings, WidgetSize
from .orchestrator import UpdateOrchestrator, CycleReport, CycleState
from .policy import Propagation, decide_propagation
from .preferences import Preferences
from .render import WidgetBoard, WidgetFace, render_face, build_launch_url
from .scheduler import UpdateScheduler
from .service import QuoteService, build_service
from .status import StatusLog
from .store import SnapshotStore

__all__ = [
    'QuoteCache',
    'SnapshotStore',
    'Quote',
    'UpdateStatus',
    'WidgetSettings',
    'WidgetSize',
    'FetchError',
    'TransportError',
    'ProviderError',
    'InvalidDataError',
    'PersistenceError',
    'RetryableError',
    'QuoteFetcher',
    'synthesize_quote',
    'is_market_open',
    'close_buffer_minutes',
    'UpdateOrchestrator',
    'CycleReport',
    'CycleState',
    'Propagation',
    'decide_propagation',
    'Preferences',
    'StatusLog',
    'WidgetBoard',
    'WidgetFace',
    'render_face',
    'build_launch_url',
    'UpdateScheduler',
    'QuoteService',
    'build_service',
]
