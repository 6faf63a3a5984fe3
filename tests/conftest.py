"""Pytest configuration and shared population fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

TESTS_ROOT = Path(__file__).resolve().parent
for path in (TESTS_ROOT.parent, TESTS_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from pums_fakes import build_raw_feed  # noqa: E402
from pums_synth.normalize import normalize  # noqa: E402


@pytest.fixture
def raw_feed() -> pd.DataFrame:
    """Six hundred raw persons, roughly a fifth of them children."""
    return build_raw_feed()


@pytest.fixture
def clean_population(raw_feed: pd.DataFrame) -> pd.DataFrame:
    """The raw feed fixture after normalization."""
    return normalize(raw_feed)
