# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Network-idle detection inside the page.

The script counts in-flight XHR and fetch requests and resolves once the
counter has stayed at zero for the debounce interval. If the document is
already complete when the script starts, the quiet timer is armed right
away (``initial``); otherwise the window load event arms it (``load``),
even while a request is still open, so a long poll started before load
does not hold the page up. A request starting afterwards cancels the timer
again. Whichever path fires first wins; the promise settles once.

This is a heuristic. A page that polls faster than the debounce interval
never goes quiet, and without ``timeout_s`` the caller waits forever.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .browser_session import DEFAULT_IDLE_DEBOUNCE_MS
from .errors import EvaluationError, IdleTimeoutError

if TYPE_CHECKING:
    from .page_controller import PageController
    from .pipeline_timer import PipelineTimer

logger = logging.getLogger(__name__)

IDLE_LABELS = frozenset({"initial", "load", "xhr", "fetch"})
_IDLE_SUFFIX = "-network-idle"

# Static payload; the debounce interval is passed as the evaluate argument.
IDLE_DETECTION_JS = """(quietMs) =>
  new Promise((resolve) => {
    let activeRequests = 0;
    let idleTimer = null;
    let settled = false;
    const tracked = new WeakSet();

    const cancelQuiet = () => {
      if (idleTimer !== null) {
        clearTimeout(idleTimer);
        idleTimer = null;
      }
    };

    const armQuiet = (label) => {
      if (settled) return;
      cancelQuiet();
      idleTimer = setTimeout(() => {
        if (settled) return;
        settled = true;
        resolve(`${label}-network-idle`);
      }, quietMs);
    };

    const started = () => {
      activeRequests++;
      cancelQuiet();
    };

    const finished = (label) => {
      activeRequests = Math.max(0, activeRequests - 1);
      if (activeRequests === 0) armQuiet(label);
    };

    const origOpen = XMLHttpRequest.prototype.open;
    XMLHttpRequest.prototype.open = function (...args) {
      if (!tracked.has(this)) {
        tracked.add(this);
        this.addEventListener('loadstart', started);
        this.addEventListener('loadend', () => finished('xhr'));
      }
      return origOpen.apply(this, args);
    };

    const origFetch = window.fetch;
    window.fetch = async function (...args) {
      started();
      try {
        return await origFetch.apply(this, args);
      } finally {
        finished('fetch');
      }
    };

    // The load path arms regardless of the request counter.
    if (document.readyState === 'complete') {
      armQuiet('initial');
    } else {
      window.addEventListener('load', () => armQuiet('load'), { once: true });
    }
  })"""


@dataclass(frozen=True, slots=True)
class IdleSignal:
    """Which heuristic path settled the page."""

    label: str  # "initial" | "load" | "xhr" | "fetch"
    raw: str

    @classmethod
    def parse(cls, value: object) -> IdleSignal:
        """Parse the ``"<label>-network-idle"`` string the script resolves with."""
        if not isinstance(value, str) or not value.endswith(_IDLE_SUFFIX):
            raise EvaluationError(f"Unexpected idle script result: {value!r}")
        label = value.removesuffix(_IDLE_SUFFIX)
        if label not in IDLE_LABELS:
            raise EvaluationError(f"Unknown idle label: {label!r}")
        return cls(label=label, raw=value)


async def wait_for_idle(
    controller: PageController,
    *,
    debounce_ms: int = DEFAULT_IDLE_DEBOUNCE_MS,
    timeout_s: float | None = None,
    timer: PipelineTimer | None = None,
) -> IdleSignal:
    """Inject the idle script and block until the page settles.

    Args:
        controller: Page to observe. Navigation must already have happened.
        debounce_ms: Quiet period required with no request in flight.
        timeout_s: Upper bound in seconds. None waits forever.
        timer: Phase timer whose report is attached to IdleTimeoutError.

    Raises:
        EvaluationError: the script threw or resolved with something unexpected.
        IdleTimeoutError: *timeout_s* elapsed before the page settled.
    """
    if timeout_s is None:
        value = await controller.evaluate(IDLE_DETECTION_JS, debounce_ms)
    else:
        try:
            async with asyncio.timeout(timeout_s):
                value = await controller.evaluate(IDLE_DETECTION_JS, debounce_ms)
        except TimeoutError as exc:
            report = timer.timeout_report() if timer is not None else {}
            raise IdleTimeoutError(
                f"Page did not become network-idle within {timeout_s:g}s",
                timeout_s=timeout_s,
                report=report,
            ) from exc
    signal = IdleSignal.parse(value)
    logger.debug("Idle signal resolved: %s", signal.label)
    return signal
