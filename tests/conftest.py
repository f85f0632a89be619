"""Pytest configuration for the VBSharp test suite."""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for vbsharp imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from vbsharp.runtime import RuntimeProvider  # noqa: E402
from vbsharp.runtime.retriever import clear_caches  # noqa: E402


@pytest.fixture
def provider():
    """A fresh runtime provider, closed after the test."""
    with RuntimeProvider() as p:
        yield p
    clear_caches()
