# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright browser session management for http-browse.

One BrowserSession is one Chromium process, one browser context and at most
one page, scoped to a single browse invocation. Events the browser pushes at
us (console output, page errors, failed requests, crashes) are queued and
drained by a background task for the whole life of the session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from urllib.parse import urlparse

from playwright.async_api import (
    Browser,
    BrowserContext,
    ConsoleMessage,
    Page,
    Playwright,
    Request,
    async_playwright,
)

from .errors import CloseError, ConfigError, InvalidURLError, LaunchError

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en-US"
DEFAULT_VIEWPORT = {"width": 1280, "height": 800}
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_IDLE_DEBOUNCE_MS = 500

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

_HOST_REQUIRED_SCHEMES = ("http", "https", "ws", "wss", "ftp")


def validate_url(url: str) -> str:
    """Return *url* stripped, or raise InvalidURLError if it is not an absolute URI."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("URL must be a non-empty string")
    url = url.strip()
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as exc:
        raise InvalidURLError(f"Malformed URL: {url} ({exc})") from exc
    if not parsed.scheme:
        raise InvalidURLError(f"URL is not absolute (missing scheme): {url}")
    if parsed.scheme.lower() in _HOST_REQUIRED_SCHEMES and not hostname:
        raise InvalidURLError(f"URL has no host: {url}")
    return url


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for one browse invocation. Immutable once built."""

    url: str
    stealth: bool = True
    headless: bool = True
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    idle_debounce_ms: int = DEFAULT_IDLE_DEBOUNCE_MS
    idle_timeout_s: float | None = None  # None: wait for the idle signal forever
    locale: str = DEFAULT_LOCALE
    viewport_width: int = DEFAULT_VIEWPORT["width"]
    viewport_height: int = DEFAULT_VIEWPORT["height"]
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", validate_url(self.url))
        if self.navigation_timeout_ms < 0:
            raise ConfigError("navigation_timeout_ms must be >= 0")
        if self.idle_debounce_ms < 0:
            raise ConfigError("idle_debounce_ms must be >= 0")
        if self.idle_timeout_s is not None and self.idle_timeout_s <= 0:
            raise ConfigError("idle_timeout_s must be positive or None")


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """One browser-pushed event waiting in the drain queue."""

    kind: str  # "console", "pageerror", "requestfailed", "crash", "disconnected"
    detail: str


def chromium_launch_args(config: SessionConfig) -> list[str]:
    """Return Chromium launch arguments for *config*.

    The debugging port is always 0 so Chromium picks a free one; unrelated
    invocations on the same host never collide.
    """
    args = [
        "--remote-debugging-port=0",
        f"--lang={config.locale}",
        "--disable-extensions",
        "--disable-dev-shm-usage",
        "--disable-background-networking",
        "--disable-sync",
        "--disable-gpu",
        "--no-first-run",
        "--disable-breakpad",
        "--no-pings",
        "--disable-domain-reliability",
        "--disable-component-update",
        "--disable-client-side-phishing-detection",
        "--noerrdialogs",
        "--disable-prompt-on-repost",
    ]
    if config.stealth:
        args.insert(0, "--disable-blink-features=AutomationControlled")
    return args


class BrowserSession:
    """One isolated Chromium process with its event drain task."""

    def __init__(self, config: SessionConfig):
        self.config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._events: asyncio.Queue[SessionEvent] | None = None
        self._drain_task: asyncio.Task | None = None
        self._closed = False
        self.events_drained = 0

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("Browser session not started. Use async with or call launch().")
        return self._context

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session has no page. Call new_page() first.")
        return self._page

    @property
    def draining(self) -> bool:
        """True while the event drain task is alive."""
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    async def launch(self) -> None:
        """Start the Playwright driver, Chromium and a fresh browser context.

        Anything that was started before a failure or a cancellation is torn
        down again, so launch() never leaves a browser process behind.
        Cancellation is re-raised unchanged; other failures become LaunchError.
        """
        if self._playwright is not None or self._closed:
            raise RuntimeError("BrowserSession.launch() may only be called once")
        self._events = asyncio.Queue()
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._launch_browser()
            self._drain_task = asyncio.create_task(self._drain_events(), name="httpbrowse-event-drain")
            self._browser.on("disconnected", self._on_disconnected)
            self._context = await self._browser.new_context(**self._context_options())
            self._context.on("console", self._on_console)
            self._context.on("requestfailed", self._on_request_failed)
        except BaseException as exc:
            try:
                await self.close()
            except CloseError:
                logger.warning("Cleanup after failed launch did not complete", exc_info=True)
            if isinstance(exc, LaunchError) or not isinstance(exc, Exception):
                raise
            raise LaunchError(f"Could not launch browser: {exc}") from exc
        logger.info(
            "Browser session started (headless=%s, stealth=%s)",
            self.config.headless,
            self.config.stealth,
        )

    async def _launch_browser(self) -> Browser:
        try:
            return await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=chromium_launch_args(self.config),
            )
        except Exception as exc:
            if "executable doesn't exist" in str(exc).lower():
                raise LaunchError(
                    "Chromium is not installed. Please run: playwright install chromium"
                ) from exc
            raise

    def _context_options(self) -> dict:
        options: dict = {
            "viewport": {
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            "locale": self.config.locale,
            "accept_downloads": False,
        }
        # Without stealth the browser keeps its own (HeadlessChrome) user agent
        if self.config.stealth:
            options["user_agent"] = self.config.user_agent
        return options

    async def new_page(self) -> Page:
        """Create the session's single page."""
        if self._page is not None:
            raise RuntimeError("Browser session already owns a page")
        page = await self.context.new_page()
        page.on("pageerror", self._on_page_error)
        page.on("crash", self._on_crash)
        self._page = page
        return page

    async def close(self) -> None:
        """Stop the drain task and shut down context, browser and driver.

        Every step is attempted even if an earlier one fails; the first
        failure is raised as CloseError afterwards. Calling close() again is
        a no-op.
        """
        if self._closed:
            return
        self._closed = True

        if self._drain_task is not None:
            self._drain_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._drain_task
            self._drain_task = None

        failures: list[Exception] = []
        for name, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:
                logger.warning("Closing %s failed: %s", name, exc)
                failures.append(exc)

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        logger.info("Browser session stopped (events drained=%d)", self.events_drained)

        if failures:
            raise CloseError(f"Browser session did not close cleanly: {failures[0]}") from failures[0]

    async def __aenter__(self) -> BrowserSession:
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.close()
        except CloseError:
            if exc_type is None:
                raise
            logger.warning("Session close failed while handling %s", exc_type.__name__, exc_info=True)

    # ── Event drain ───────────────────────────────────────────────

    def _emit(self, kind: str, detail: str) -> None:
        if self._events is not None and not self._closed:
            self._events.put_nowait(SessionEvent(kind=kind, detail=detail))

    async def _drain_events(self) -> None:
        """Consume and discard browser events until cancelled by close()."""
        assert self._events is not None
        while True:
            event = await self._events.get()
            self.events_drained += 1
            logger.debug("browser event %s: %.200s", event.kind, event.detail)

    def _on_console(self, message: ConsoleMessage) -> None:
        self._emit("console", f"[{message.type}] {message.text}")

    def _on_request_failed(self, request: Request) -> None:
        self._emit("requestfailed", f"{request.url} ({request.failure})")

    def _on_page_error(self, error: Exception) -> None:
        self._emit("pageerror", str(error))

    def _on_crash(self, page: Page) -> None:
        logger.warning("Page crashed: %s", page.url)
        self._emit("crash", page.url)

    def _on_disconnected(self, browser: Browser) -> None:
        self._emit("disconnected", "browser process disconnected")


@asynccontextmanager
async def create_session(config: SessionConfig) -> AsyncGenerator[BrowserSession, None]:
    """Context manager that launches a session and always closes it."""
    async with BrowserSession(config) as session:
        yield session
