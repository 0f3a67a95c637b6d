"""
Tests for the market-hours gate.

Run with: python -m pytest tests/test_market_hours.py
From the backend directory.
"""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from quotes.market_hours import close_buffer_minutes, is_market_open

NY = ZoneInfo('America/New_York')
BUFFER = close_buffer_minutes(15)


def _ny(day, hour, minute):
    # July 2024: Mon 8 .. Fri 12, Sat 6 / Sun 7 and Sat 13 / Sun 14
    return datetime(2024, 7, day, hour, minute, tzinfo=NY)


def test_buffer_is_interval_plus_one():
    assert close_buffer_minutes(15) == 16
    assert close_buffer_minutes(60) == 61


def test_open_at_exact_opening_boundary():
    assert is_market_open(_ny(8, 9, 30), 'America/New_York', BUFFER)


def test_closed_one_minute_before_open():
    assert not is_market_open(_ny(8, 9, 29), 'America/New_York', BUFFER)


def test_open_at_buffered_close():
    assert is_market_open(_ny(8, 16, 16), 'America/New_York', BUFFER)


def test_closed_one_minute_after_buffered_close():
    assert not is_market_open(_ny(8, 16, 17), 'America/New_York', BUFFER)


def test_without_buffer_close_is_four_pm():
    assert is_market_open(_ny(9, 16, 0), 'America/New_York', 0)
    assert not is_market_open(_ny(9, 16, 1), 'America/New_York', 0)


@pytest.mark.parametrize('day', [6, 7, 13, 14])
@pytest.mark.parametrize('hour,minute', [(0, 0), (9, 30), (12, 0), (16, 0), (23, 59)])
def test_weekends_are_closed(day, hour, minute):
    assert not is_market_open(_ny(day, hour, minute), 'America/New_York', BUFFER)


def test_utc_input_is_converted_to_exchange_time():
    # 13:30 UTC is 09:30 EDT
    assert is_market_open(datetime(2024, 7, 8, 13, 30, tzinfo=timezone.utc), 'America/New_York', BUFFER)
    assert not is_market_open(datetime(2024, 7, 8, 13, 29, tzinfo=timezone.utc), 'America/New_York', BUFFER)


def test_winter_offset():
    # 14:30 UTC is 09:30 EST in January
    assert is_market_open(datetime(2024, 1, 8, 14, 30, tzinfo=timezone.utc), 'America/New_York', BUFFER)
    assert not is_market_open(datetime(2024, 1, 8, 14, 29, tzinfo=timezone.utc), 'America/New_York', BUFFER)


def test_naive_datetime_is_treated_as_utc():
    assert is_market_open(datetime(2024, 7, 8, 13, 30), 'America/New_York', BUFFER)


def test_friday_evening_utc_is_saturday_nowhere_near_open():
    # 02:00 UTC Saturday is 22:00 EDT Friday: a weekday, but after the close
    assert not is_market_open(datetime(2024, 7, 13, 2, 0, tzinfo=timezone.utc), NY, BUFFER)


def test_same_input_same_answer():
    moment = _ny(10, 11, 45)
    results = {is_market_open(moment, 'America/New_York', BUFFER) for _ in range(5)}
    assert results == {True}
