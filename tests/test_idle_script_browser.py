# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Idle-detection script against a real Chromium.

Pages are served from a fake origin through ``BrowserContext.route`` so no
network is needed. Requires ``playwright install chromium`` and
HTTPBROWSE_BROWSER_TESTS=1.
"""

from __future__ import annotations

import asyncio
import time
from urllib.parse import urlparse

import pytest

from httpbrowse.browser_session import SessionConfig, create_session
from httpbrowse.errors import IdleTimeoutError
from httpbrowse.idle import IDLE_DETECTION_JS, wait_for_idle
from httpbrowse.page_controller import PageController

pytestmark = [pytest.mark.browser, pytest.mark.timeout(60)]

ORIGIN = "http://idle.test"
DEBOUNCE_MS = 500

_STATIC = "<html><body><p>static</p></body></html>"

_SLOW_IMAGE = '<html><body><img src="/slow.png"><p>late load</p></body></html>'

_SEQUENTIAL_FETCHES = """<html><body><script>
window.addEventListener('load', () => {
  setTimeout(async () => {
    for (let i = 0; i < 3; i++) {
      await fetch('/data?i=' + i);
      window.lastRequestEnd = performance.now();
      await new Promise((r) => setTimeout(r, 100));
    }
  }, 400);
});
</script></body></html>"""

_SEQUENTIAL_XHR = """<html><body><script>
const get = (url) => new Promise((resolve) => {
  const xhr = new XMLHttpRequest();
  xhr.open('GET', url);
  xhr.onloadend = () => { window.lastRequestEnd = performance.now(); resolve(); };
  xhr.send();
});
window.addEventListener('load', () => {
  setTimeout(async () => {
    for (let i = 0; i < 2; i++) {
      await get('/data?x=' + i);
      await new Promise((r) => setTimeout(r, 100));
    }
  }, 400);
});
</script></body></html>"""

_OPEN_REQUEST_AT_LOAD = """<html><body><img src="/slow.png"><script>
setTimeout(() => fetch('/hang'), 300);
</script></body></html>"""

_POLLING = """<html><body><script>
setInterval(() => fetch('/poll'), 100);
</script></body></html>"""

_PAGES = {
    "/static": _STATIC,
    "/slow-image": _SLOW_IMAGE,
    "/fetches": _SEQUENTIAL_FETCHES,
    "/xhr": _SEQUENTIAL_XHR,
    "/polling": _POLLING,
    "/open-at-load": _OPEN_REQUEST_AT_LOAD,
}


async def _serve(route) -> None:
    path = urlparse(route.request.url).path
    if path in _PAGES:
        await route.fulfill(status=200, content_type="text/html", body=_PAGES[path])
    elif path == "/slow.png":
        await asyncio.sleep(1.0)
        await route.fulfill(status=200, content_type="image/png", body=b"")
    elif path == "/hang":
        # Left unhandled: the request stays pending for the rest of the test.
        return
    elif path == "/data":
        await asyncio.sleep(0.15)
        await route.fulfill(status=200, content_type="application/json", body='{"ok": true}')
    else:
        await route.fulfill(status=200, content_type="text/plain", body="ok")


@pytest.fixture
async def controller():
    config = SessionConfig(url=f"{ORIGIN}/static", stealth=False, idle_debounce_ms=DEBOUNCE_MS)
    async with create_session(config) as session:
        await session.context.route(f"{ORIGIN}/**", _serve)
        yield PageController(session)


async def _open(controller: PageController, path: str) -> None:
    await controller.open(f"{ORIGIN}{path}")


class TestQuietPages:
    async def test_static_page_settles_after_debounce(self, controller):
        await _open(controller, "/static")
        started = time.monotonic()
        signal = await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS)
        elapsed_ms = (time.monotonic() - started) * 1000
        assert signal.label in ("initial", "load")
        assert elapsed_ms >= DEBOUNCE_MS * 0.9

    async def test_injected_before_load_uses_load_path(self, controller):
        page = await controller._session.new_page()
        controller._page = page
        await page.goto(f"{ORIGIN}/slow-image", wait_until="domcontentloaded")
        signal = await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS)
        assert signal.label == "load"

    async def test_request_open_at_load_does_not_block_load_path(self, controller):
        page = await controller._session.new_page()
        controller._page = page
        await page.goto(f"{ORIGIN}/open-at-load", wait_until="domcontentloaded")
        signal = await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS, timeout_s=10)
        assert signal.label == "load"

    async def test_content_after_idle(self, controller):
        await _open(controller, "/static")
        await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS)
        assert "static" in await controller.content()


class TestRequestTracking:
    async def test_sequential_fetches_settle_after_last_one(self, controller):
        await _open(controller, "/fetches")
        signal = await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS)
        assert signal.label == "fetch"
        quiet_ms = await controller.evaluate("() => performance.now() - window.lastRequestEnd")
        assert quiet_ms >= DEBOUNCE_MS * 0.9

    async def test_sequential_xhr_settle_after_last_one(self, controller):
        await _open(controller, "/xhr")
        signal = await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS)
        assert signal.label == "xhr"
        quiet_ms = await controller.evaluate("() => performance.now() - window.lastRequestEnd")
        assert quiet_ms >= DEBOUNCE_MS * 0.9

    async def test_script_resolves_once_per_injection(self, controller):
        await _open(controller, "/static")
        first = await controller.evaluate(IDLE_DETECTION_JS, 100)
        second = await controller.evaluate(IDLE_DETECTION_JS, 100)
        assert first == second == "initial-network-idle"


class TestNeverIdle:
    async def test_polling_page_hits_idle_timeout(self, controller):
        await _open(controller, "/polling")
        with pytest.raises(IdleTimeoutError):
            await wait_for_idle(controller, debounce_ms=DEBOUNCE_MS, timeout_s=2)

    async def test_polling_page_pending_without_timeout(self, controller):
        await _open(controller, "/polling")
        task = asyncio.ensure_future(wait_for_idle(controller, debounce_ms=DEBOUNCE_MS))
        done, _ = await asyncio.wait({task}, timeout=2)
        assert not done
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
