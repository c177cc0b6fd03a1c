# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page-level primitives on top of a BrowserSession.

Opens the session's single page, applies stealth patches, navigates, runs
scripts and serializes the live DOM. Every Playwright failure is translated
into the BrowseError subclass for the phase it happened in.
"""

from __future__ import annotations

import logging
from typing import Any

from playwright.async_api import Page
from playwright_stealth import Stealth

from .browser_session import BrowserSession
from .errors import ContentError, EvaluationError, NavigationError, StealthError
from .pipeline_timer import PipelineTimer

logger = logging.getLogger(__name__)


class PageController:
    """Drives the one page owned by a BrowserSession."""

    def __init__(self, session: BrowserSession, stealth: Stealth | None = None):
        self._session = session
        self._stealth = stealth or Stealth()
        self._page: Page | None = None
        self.http_status: int | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Page not opened. Call open() first.")
        return self._page

    async def open(self, url: str | None = None, timer: PipelineTimer | None = None) -> Page:
        """Create the page, apply stealth if configured, then navigate to *url*.

        Stealth goes in before navigation so its init scripts run ahead of
        every page script.
        """
        config = self._session.config
        url = url or config.url
        try:
            self._page = await self._session.new_page()
        except RuntimeError:
            raise
        except Exception as exc:
            raise NavigationError(f"Could not open a new page: {exc}", url=url) from exc

        if config.stealth:
            if timer is not None:
                timer.stage("stealth")
            await self.enable_stealth()

        if timer is not None:
            timer.stage("navigation")
        await self.navigate(url)
        return self._page

    async def enable_stealth(self) -> None:
        try:
            await self._stealth.apply_stealth_async(self.page)
        except Exception as exc:
            raise StealthError(f"Could not enable stealth mode: {exc}") from exc
        logger.debug("Stealth mode enabled")

    async def navigate(self, url: str) -> int | None:
        """Load *url* and wait for the window load event.

        An HTTP error status is not a navigation failure; the status is kept
        on ``http_status`` and logged.
        """
        try:
            response = await self.page.goto(
                url,
                wait_until="load",
                timeout=self._session.config.navigation_timeout_ms,
            )
        except Exception as exc:
            raise NavigationError(str(exc), url=url) from exc
        self.http_status = response.status if response else None
        if self.http_status is not None and self.http_status >= 400:
            logger.warning("Navigated to %s with HTTP status %d", url, self.http_status)
        else:
            logger.info("Navigated to %s (status=%s)", url, self.http_status)
        return self.http_status

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run *script* in the page. Promise results are awaited; no timeout here."""
        page = self.page
        try:
            if arg is None:
                return await page.evaluate(script)
            return await page.evaluate(script, arg)
        except Exception as exc:
            raise EvaluationError(f"Script evaluation failed: {exc}") from exc

    async def content(self) -> str:
        """Serialize the live DOM."""
        if self._page is None or self._page.is_closed():
            raise ContentError("Page is not open; nothing to serialize")
        try:
            return await self._page.content()
        except Exception as exc:
            raise ContentError(f"Could not read page content: {exc}") from exc
