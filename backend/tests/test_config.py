"""
Tests for configuration defaults and the database location.

Run with: python -m pytest tests/test_config.py
From the backend directory.
"""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pathlib import Path

import config
from config import Config
from quotes.db import get_db_path

BACKEND_DIR = Path(__file__).resolve().parent.parent


def test_relative_db_path_is_anchored_to_backend(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    assert config._backend_path('data/quotes.db') == str(BACKEND_DIR / 'data' / 'quotes.db')
    assert Path(Config.QUOTES_DB_PATH).is_absolute()


def test_absolute_db_path_is_kept(tmp_path):
    target = tmp_path / 'elsewhere' / 'quotes.db'
    assert config._backend_path(str(target)) == str(target)


def test_default_connection_path_follows_config(monkeypatch, tmp_path):
    target = tmp_path / 'shared' / 'quotes.db'
    monkeypatch.setattr(Config, 'QUOTES_DB_PATH', str(target))

    assert get_db_path() == target
    assert target.parent.is_dir()
