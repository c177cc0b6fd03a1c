# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""http-browse: fetch fully rendered HTML by driving a real Chromium.

Each call launches an isolated browser, optionally applies stealth
patches, navigates, waits until the page's XHR/fetch traffic has been
quiet for a debounce interval, and returns the live DOM as HTML.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("http-browse")
except PackageNotFoundError:
    __version__ = "unknown"

from .browse import browse_page, browse_page_async  # noqa: E402
from .browser_session import SessionConfig  # noqa: E402
from .errors import (  # noqa: E402
    BrowseError,
    CloseError,
    ConfigError,
    ContentError,
    EvaluationError,
    IdleTimeoutError,
    InvalidURLError,
    LaunchError,
    NavigationError,
    StealthError,
)

__all__ = [
    "BrowseError",
    "CloseError",
    "ConfigError",
    "ContentError",
    "EvaluationError",
    "IdleTimeoutError",
    "InvalidURLError",
    "LaunchError",
    "NavigationError",
    "SessionConfig",
    "StealthError",
    "__version__",
    "browse_page",
    "browse_page_async",
]
