# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""http-browse exception hierarchy.

Every failure surfaced by ``browse_page`` is a BrowseError. Subclasses
identify the lifecycle phase that failed; the message is the underlying
cause text and the original exception is chained via ``__cause__``.
"""

from __future__ import annotations

BROWSE_FAILED_LABEL = "browse failed"


class BrowseError(Exception):
    """Base exception for all http-browse errors."""

    phase: str = "browse"
    label: str = BROWSE_FAILED_LABEL


class ConfigError(BrowseError, ValueError):
    """A SessionConfig value is out of range."""

    phase = "config"


class InvalidURLError(ConfigError):
    """Target URL is empty or not an absolute URI."""


class LaunchError(BrowseError):
    """Browser process could not start or its control channel failed."""

    phase = "launch"


class NavigationError(BrowseError):
    """The requested URL could not be loaded into the page."""

    phase = "navigation"

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class StealthError(BrowseError):
    """Stealth countermeasures failed to apply."""

    phase = "stealth"


class EvaluationError(BrowseError):
    """The idle-detection script failed or threw inside the page."""

    phase = "idle"


class IdleTimeoutError(EvaluationError):
    """The page did not go network-idle within the configured bound."""

    def __init__(self, message: str, *, timeout_s: float = 0.0, report: dict | None = None) -> None:
        super().__init__(message)
        self.timeout_s = timeout_s
        self.report = report or {}


class ContentError(BrowseError):
    """The rendered document could not be serialized."""

    phase = "content"


class CloseError(BrowseError):
    """Session teardown failed."""

    phase = "close"
