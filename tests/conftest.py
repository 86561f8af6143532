# FILE: tests/conftest.py
"""
Pytest configuration for the on-device AI test suite.

Configures:
- pytest-asyncio for async test support
- host builders: SimpleNamespace surfaces with AsyncMock methods
  (plain Mock would invent every attribute and match every binding strategy)
"""
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Optional

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from unittest.mock import AsyncMock

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


def make_surface(
    available: Optional[str] = "readily",
    session: Any = None,
    download: bool = False,
    **extra: Any,
) -> SimpleNamespace:
    """
    Property-based host surface.

    available=None builds a surface without a capabilities() probe.
    """
    surface = SimpleNamespace(create=AsyncMock(return_value=session if session is not None else SimpleNamespace()))
    if available is not None:
        surface.capabilities = AsyncMock(return_value={"available": available})
    if download:
        surface.downloadModel = AsyncMock(return_value=None)
    for name, value in extra.items():
        setattr(surface, name, value)
    return surface


def make_session(**methods: Any) -> SimpleNamespace:
    """Session whose methods are AsyncMocks returning the given values."""
    return SimpleNamespace(**{name: AsyncMock(return_value=value) for name, value in methods.items()})


@pytest.fixture
def surface_factory():
    return make_surface


@pytest.fixture
def session_factory():
    return make_session


@pytest.fixture(autouse=True)
def _reset_process_client():
    from ondevice_ai.client import set_client

    yield
    set_client(None)
