"""Shared fixtures for integration tests.

These tests use the real config loader, app factory and lifespan wiring
with outbound HTTP mocked via respx.
"""

from __future__ import annotations

import os

import pytest
import respx


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host VIDRELAY_* variables out of the config layers."""
    for name in list(os.environ):
        if name.startswith("VIDRELAY_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router
