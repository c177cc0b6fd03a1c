# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

import os

try:
    import httpbrowse  # noqa: F401
except ImportError:
    raise ImportError("httpbrowse is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from tests._fakes import make_stack, patched

_OPT_IN = {
    "browser": "HTTPBROWSE_BROWSER_TESTS",
    "network": "HTTPBROWSE_NETWORK_TESTS",
}


def pytest_collection_modifyitems(config, items):
    """Skip browser/network tests unless their opt-in env var is set."""
    for marker, env_var in _OPT_IN.items():
        if os.environ.get(env_var, "").strip().lower() in ("1", "true", "yes"):
            continue
        skip_marker = pytest.mark.skip(reason=f"set {env_var}=1 to run")
        for item in items:
            if marker in item.keywords:
                item.add_marker(skip_marker)


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: unit tests must never start a real Playwright driver.

    Tests that want a fake browser use the ``fake_stack`` fixture, which
    patches over this one. Tests marked ``browser`` or ``network`` opt out.
    """
    if "browser" in request.keywords or "network" in request.keywords:
        return

    def _no_real_playwright():
        raise RuntimeError("Test tried to start a real Playwright driver. Use the fake_stack fixture.")

    monkeypatch.setattr("httpbrowse.browser_session.async_playwright", _no_real_playwright)


@pytest.fixture
def fake_stack():
    """Patch Playwright and playwright-stealth with a recording fake stack."""
    with patched(make_stack()) as stack:
        yield stack
