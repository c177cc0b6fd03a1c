# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Structured, user-facing description of a browse failure.

Maps http-browse exceptions to a ``ProblemDetail`` (type, title, detail,
hint) that the CLI prints as text or JSON. Details are scrubbed of
credentials and filesystem paths, and Chromium ``net::ERR_*`` messages are
turned into something a person can act on.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .errors import (
    BROWSE_FAILED_LABEL,
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

_ERROR_BASE = "urn:httpbrowse:errors"

MAX_DETAIL_LENGTH = 300


class ProblemType(StrEnum):
    """Error taxonomy for http-browse."""

    INVALID_URL = "invalid-url"
    INVALID_CONFIG = "invalid-config"
    BROWSER_UNAVAILABLE = "browser-unavailable"
    DNS_RESOLUTION_FAILED = "dns-resolution-failed"
    CONNECTION_FAILED = "connection-failed"
    PAGE_TIMEOUT = "page-timeout"
    TLS_ERROR = "tls-error"
    NAVIGATION_FAILED = "navigation-failed"
    STEALTH_FAILED = "stealth-failed"
    IDLE_TIMEOUT = "idle-timeout"
    EVALUATION_FAILED = "evaluation-failed"
    CONTENT_FAILED = "content-failed"
    CLOSE_FAILED = "close-failed"
    INTERNAL_ERROR = "internal-error"

    @property
    def uri(self) -> str:
        return f"{_ERROR_BASE}:{self.value}"


_TITLES: dict[ProblemType, str] = {
    ProblemType.INVALID_URL: "Invalid URL",
    ProblemType.INVALID_CONFIG: "Invalid Configuration",
    ProblemType.BROWSER_UNAVAILABLE: "Browser Unavailable",
    ProblemType.DNS_RESOLUTION_FAILED: "DNS Resolution Failed",
    ProblemType.CONNECTION_FAILED: "Connection Failed",
    ProblemType.PAGE_TIMEOUT: "Page Timed Out",
    ProblemType.TLS_ERROR: "TLS Error",
    ProblemType.NAVIGATION_FAILED: "Navigation Failed",
    ProblemType.STEALTH_FAILED: "Stealth Mode Failed",
    ProblemType.IDLE_TIMEOUT: "Page Never Went Idle",
    ProblemType.EVALUATION_FAILED: "Script Evaluation Failed",
    ProblemType.CONTENT_FAILED: "Content Unavailable",
    ProblemType.CLOSE_FAILED: "Browser Close Failed",
    ProblemType.INTERNAL_ERROR: "Internal Error",
}

_CLI_HINTS: dict[ProblemType, str] = {
    ProblemType.INVALID_URL: "Pass an absolute URL such as https://example.com",
    ProblemType.BROWSER_UNAVAILABLE: "Ensure Chromium is installed: playwright install chromium",
    ProblemType.DNS_RESOLUTION_FAILED: "Check the URL spelling and ensure the domain exists.",
    ProblemType.CONNECTION_FAILED: "Check that the site is reachable from this machine.",
    ProblemType.PAGE_TIMEOUT: "The page took too long to load. Try --nav-timeout with a larger value.",
    ProblemType.TLS_ERROR: "The site's certificate was rejected by Chromium.",
    ProblemType.STEALTH_FAILED: "Retry with --no-stealth.",
    ProblemType.IDLE_TIMEOUT: "The page keeps polling the network. Raise --idle-timeout or accept partial rendering.",
}

# ── Secret / path scrubbing ──────────────────────────────────────────

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (re.compile(r"Basic\s+[A-Za-z0-9+/=]{8,}"), "Basic <redacted>"),
    (
        re.compile(r"(?:API_KEY|SECRET|TOKEN|PASSWORD)\s*[=:]\s*\S+", re.IGNORECASE),
        "<redacted>",
    ),
]

_PATH_PATTERN = re.compile(
    r"(/(?:Users|home|tmp|var|etc|opt|root|srv|usr|Library|private|snap|mnt|nix)/[\w./-]+"
    r"|[A-Z]:\\[\w.\\-]+)"
)

# Playwright appends a multi-line "Call log:" section to its errors
_CALL_LOG_RE = re.compile(r"\n\s*(?:Call log|=+ logs =+).*", re.DOTALL)


def sanitize_detail(text: str) -> str:
    """Scrub secrets and filesystem paths from *text*, then truncate."""
    text = _CALL_LOG_RE.sub("", text).strip()
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _PATH_PATTERN.sub("<path>", text)
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[:MAX_DETAIL_LENGTH] + "..."
    return text


# ── Chromium net::ERR_* classification ───────────────────────────────

_NET_ERR_RE = re.compile(r"net::ERR_(\w+)")
_HOSTNAME_RE = re.compile(r"https?://([^/:\s]+)")

_DNS_CODES = {"NAME_NOT_RESOLVED", "NAME_RESOLUTION_FAILED"}
_TIMED_OUT_CODES = {"CONNECTION_TIMED_OUT", "TIMED_OUT"}
_CONNECTION_CODES = {
    "CONNECTION_REFUSED",
    "CONNECTION_CLOSED",
    "CONNECTION_RESET",
    "EMPTY_RESPONSE",
    "ADDRESS_UNREACHABLE",
    "INTERNET_DISCONNECTED",
}


def classify_network_error(exc_message: str) -> tuple[ProblemType, str] | None:
    """Classify a Playwright navigation error message.

    Returns ``None`` if *exc_message* carries no ``net::ERR_*`` code.
    """
    m = _NET_ERR_RE.search(exc_message)
    if m is None:
        return None
    code = m.group(1)
    hm = _HOSTNAME_RE.search(exc_message)
    hostname = hm.group(1) if hm else ""

    if code in _DNS_CODES:
        host_part = f" '{hostname}'" if hostname else ""
        return ProblemType.DNS_RESOLUTION_FAILED, f"Could not resolve domain name{host_part}"
    if code in _TIMED_OUT_CODES:
        host_part = f" to '{hostname}'" if hostname else ""
        return ProblemType.PAGE_TIMEOUT, f"Connection timed out{host_part}"
    if code in _CONNECTION_CODES:
        host_part = f" to '{hostname}'" if hostname else ""
        return ProblemType.CONNECTION_FAILED, f"Connection failed{host_part}"
    if "CERT" in code or "SSL" in code:
        host_part = f" for '{hostname}'" if hostname else ""
        return ProblemType.TLS_ERROR, f"SSL/TLS error{host_part}"
    return ProblemType.NAVIGATION_FAILED, f"Navigation failed (net::ERR_{code})"


# ── ProblemDetail ────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ProblemDetail:
    """Immutable, printable description of one failed invocation."""

    type: str
    title: str
    detail: str
    phase: str = "browse"
    label: str = BROWSE_FAILED_LABEL
    hint: str = ""
    extensions: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "label": self.label,
            "phase": self.phase,
            "detail": self.detail,
        }
        if self.hint:
            d["hint"] = self.hint
        for k, v in self.extensions.items():
            d.setdefault(k, v)
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_cli_text(self) -> str:
        """Human-friendly CLI message.

        Format::

            Error (browse failed): <detail>
            Hint: <hint>
        """
        lines = [f"Error ({self.label}): {self.detail}"]
        if self.hint:
            lines.append(f"Hint: {self.hint}")
        return "\n".join(lines)


_EXCEPTION_TYPES: tuple[tuple[type[BrowseError], ProblemType], ...] = (
    (InvalidURLError, ProblemType.INVALID_URL),
    (ConfigError, ProblemType.INVALID_CONFIG),
    (LaunchError, ProblemType.BROWSER_UNAVAILABLE),
    (NavigationError, ProblemType.NAVIGATION_FAILED),
    (StealthError, ProblemType.STEALTH_FAILED),
    (IdleTimeoutError, ProblemType.IDLE_TIMEOUT),
    (EvaluationError, ProblemType.EVALUATION_FAILED),
    (ContentError, ProblemType.CONTENT_FAILED),
    (CloseError, ProblemType.CLOSE_FAILED),
)


def _build(problem_type: ProblemType, detail: str, phase: str, extensions: dict[str, Any]) -> ProblemDetail:
    return ProblemDetail(
        type=problem_type.uri,
        title=_TITLES[problem_type],
        detail=detail,
        phase=phase,
        hint=_CLI_HINTS.get(problem_type, ""),
        extensions=extensions,
    )


def from_exception(exc: BaseException) -> ProblemDetail:
    """Build a ProblemDetail from *exc*.

    BrowseError subclasses map to their own problem type. A NavigationError
    carrying a Chromium ``net::ERR_*`` code is classified further. Anything
    else becomes ``internal-error``.
    """
    message = str(exc) or type(exc).__name__

    if not isinstance(exc, BrowseError):
        return _build(ProblemType.INTERNAL_ERROR, sanitize_detail(message), "browse", {})

    extensions: dict[str, Any] = {}
    problem_type = ProblemType.INTERNAL_ERROR
    for exc_type, ptype in _EXCEPTION_TYPES:
        if isinstance(exc, exc_type):
            problem_type = ptype
            break
    detail = sanitize_detail(message)

    if isinstance(exc, NavigationError):
        if exc.url:
            extensions["url"] = sanitize_detail(exc.url)
        classified = classify_network_error(message)
        if classified is not None:
            problem_type, detail = classified
            code = _NET_ERR_RE.search(message)
            extensions["net_error"] = code.group(0) if code else ""
        elif "timeout" in message.lower():
            problem_type = ProblemType.PAGE_TIMEOUT
    elif isinstance(exc, IdleTimeoutError):
        extensions["timeout_s"] = exc.timeout_s
        if exc.report:
            extensions["timing"] = exc.report

    return _build(problem_type, detail, exc.phase, extensions)
