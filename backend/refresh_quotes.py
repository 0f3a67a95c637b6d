#!/usr/bin/env python3
"""Script to run one forced quote update cycle and print what happened."""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config import Config
from quotes import RetryableError, WidgetSettings, WidgetSize, build_service


def main(argv=None):
    parser = argparse.ArgumentParser(description="Refresh cached stock quotes")
    parser.add_argument('--db', default=Config.QUOTES_DB_PATH, help="Quote database path")
    parser.add_argument('--symbol', action='append', default=[],
                        help="Track this symbol with a new widget before refreshing (repeatable)")
    parser.add_argument('--respect-market-hours', action='store_true',
                        help="Skip the update when the market is closed")
    args = parser.parse_args(argv)

    logging.basicConfig(level=Config.LOG_LEVEL, format='%(levelname)s: %(message)s')

    service = build_service(args.db)
    service.board.restore()

    for symbol in args.symbol:
        live = service.board.live_widget_ids()[WidgetSize.NORMAL]
        widget_id = max(live, default=0) + 1
        service.board.add(WidgetSettings(widget_id=widget_id, size=WidgetSize.NORMAL, symbol=symbol))

    api_key = service.preferences.get_credential()
    print(f"\nQuote refresh settings:")
    print(f"  Database: {args.db}")
    print(f"  API key: {'configured' if api_key else 'NOT CONFIGURED (synthetic data)'}")
    print(f"  Tracked symbols: {', '.join(service.preferences.get_tracked_symbols()) or 'none'}")

    try:
        report = service.scheduler.run_now(forced=not args.respect_market_hours)
    except RetryableError as e:
        print(f"\nUpdate failed: {e}")
        return 1

    print(f"\nUpdate cycle complete!")
    if report.skipped_reason:
        print(f"  Skipped: {report.skipped_reason}")
    print(f"  Successful: {len(report.succeeded)}")
    print(f"  Failed: {len(report.failed)}")
    if report.failed:
        print(f"  Failed symbols: {', '.join(report.failed)}")
    print(f"  Widgets refreshed: {'yes' if report.propagated else 'no'}")

    for face in service.board.faces():
        change = f" {face.change_text}" if face.change_text else ""
        marker = " (default data)" if face.is_placeholder else ""
        print(f"  [{face.size} #{face.widget_id}] {face.symbol_text} {face.price_text}{change} {face.percent_text}{marker}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
