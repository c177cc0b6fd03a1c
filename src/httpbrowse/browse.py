# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Fetch the rendered HTML of a page through a real browser.

Lifecycle per call: launch -> open (stealth, navigate) -> idle -> content
-> close. Each call gets its own Chromium process; nothing is shared
between calls.
"""

from __future__ import annotations

import asyncio
import logging

import structlog

from .browser_session import (
    DEFAULT_IDLE_DEBOUNCE_MS,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    BrowserSession,
    SessionConfig,
)
from .errors import BrowseError, CloseError
from .idle import wait_for_idle
from .page_controller import PageController
from .pipeline_timer import PipelineTimer

logger = logging.getLogger(__name__)


def browse_page(
    url: str,
    stealth: bool = True,
    headless: bool = True,
    *,
    idle_timeout: float | None = None,
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
    idle_debounce_ms: int = DEFAULT_IDLE_DEBOUNCE_MS,
) -> str:
    """Return the rendered HTML of *url*.

    Runs the whole session inside a fresh event loop, so it must not be
    called from a running loop; use :func:`browse_page_async` there.

    Raises:
        BrowseError: any phase failed. The subclass names the phase.
    """
    config = SessionConfig(
        url=url,
        stealth=stealth,
        headless=headless,
        idle_timeout_s=idle_timeout,
        navigation_timeout_ms=navigation_timeout_ms,
        idle_debounce_ms=idle_debounce_ms,
    )
    return asyncio.run(browse_page_async(config))


async def browse_page_async(config: SessionConfig, *, timer: PipelineTimer | None = None) -> str:
    """Async variant of :func:`browse_page` taking a ready SessionConfig."""
    timer = timer or PipelineTimer()
    with structlog.contextvars.bound_contextvars(url=config.url):
        try:
            return await _run_session(config, timer)
        except BrowseError:
            raise
        except Exception as exc:
            raise BrowseError(str(exc) or type(exc).__name__) from exc
        finally:
            timer.finalize()
            logger.debug("Browse phases: %s", timer.elapsed_per_stage())


async def _run_session(config: SessionConfig, timer: PipelineTimer) -> str:
    session = BrowserSession(config)
    try:
        timer.stage("launch")
        await session.launch()
        controller = PageController(session)
        await controller.open(timer=timer)

        timer.stage("idle")
        signal = await wait_for_idle(
            controller,
            debounce_ms=config.idle_debounce_ms,
            timeout_s=config.idle_timeout_s,
            timer=timer,
        )

        timer.stage("content")
        html = await controller.content()
        logger.info(
            "Rendered %s: %d chars, idle=%s, %.0fms",
            config.url,
            len(html),
            signal.label,
            timer.total_ms(),
        )
        return html
    finally:
        timer.stage("close")
        try:
            await session.close()
        except CloseError:
            # Teardown never decides the outcome of the call.
            logger.warning("Browser session close failed", exc_info=True)
