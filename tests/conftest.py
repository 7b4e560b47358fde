"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path
from unittest import mock

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from process_helper.config import reload_config  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clean_config() -> Iterator[None]:
    """Run every test with no PH_* variables set and a fresh global config."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("PH_")}
    with mock.patch.dict(os.environ, env, clear=True):
        reload_config()
        yield
    reload_config()


@pytest.fixture
def chatty_cli() -> list[str]:
    """argv prefix for the chatty_cli.py fixture script."""
    return [sys.executable, str(FIXTURES_DIR / "chatty_cli.py")]
