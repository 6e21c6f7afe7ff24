# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import listingscout  # noqa: F401
except ImportError:
    raise ImportError("listingscout is not installed. Run: pip install -e '.[dev]'") from None

import pytest
import structlog


@pytest.fixture(autouse=True)
def _block_real_browser(monkeypatch):
    """Safety net: prevent real remote browser connections in unit tests.

    Tests that need a session should pass a ``session_factory`` or patch
    ``listingscout.pipeline.create_session`` explicitly; that patch takes
    priority over this fixture. Tests that forget will get a clear error
    instead of silently dialing BROWSER_WS.
    """

    def _no_real_session(config):
        raise RuntimeError(
            "Test tried to open a real browser session. Patch 'listingscout.pipeline.create_session' in your test."
        )

    monkeypatch.setattr("listingscout.pipeline.create_session", _no_real_session)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """structlog contextvars must not leak between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
