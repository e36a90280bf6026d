"""
Bounded pool of headless browser processes for the browser render backend.

Entry lifecycle: Idle -> Acquired -> (released: Idle | unhealthy or over capacity: Closed).
At most `capacity` entries are pooled; when every pooled slot is taken, acquire()
creates an ephemeral entry that is closed on release instead of blocking.
No method awaits while the pool's bookkeeping is half-updated, so acquire/release
are atomic with respect to the event loop.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional, Protocol

from errors import BrowserUnresponsive

_LOG = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--font-render-hinting=none",
    "--disable-extensions",
    "--no-first-run",
    "--no-zygote",
]


class BrowserLauncher(Protocol):
    async def launch(self) -> Any:
        ...

    async def close(self) -> None:
        ...


class PlaywrightLauncher:
    """Starts Playwright once and launches hardened headless Chromium processes from it."""

    def __init__(self, headless: bool = True, args: list[str] | None = None):
        self.headless = headless
        self.args = list(args or CHROMIUM_ARGS)
        self._playwright = None
        self._lock = asyncio.Lock()

    async def launch(self) -> Any:
        from playwright.async_api import async_playwright

        async with self._lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(headless=self.headless, args=self.args)

    async def close(self) -> None:
        async with self._lock:
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


@dataclass(eq=False)
class BrowserPoolEntry:
    browser: Any
    pooled: bool
    created_at: float
    last_used_at: float
    pages: list[Any] = field(default_factory=list)

    @property
    def open_page_count(self) -> int:
        return len(self.open_pages())

    def open_pages(self) -> list[Any]:
        self.pages = [p for p in self.pages if not p.is_closed()]
        return self.pages

    async def new_page(self) -> Any:
        page = await self.browser.new_page()
        self.pages.append(page)
        return page

    async def trim_pages(self) -> None:
        """Close every page but the first."""
        pages = self.open_pages()
        for page in pages[1:]:
            try:
                await page.close()
            except Exception as exc:
                _LOG.warning("Failed to close browser page: %s", exc)
        self.pages = pages[:1]

    async def close(self) -> None:
        try:
            await self.browser.close()
        except Exception as exc:
            _LOG.warning("Failed to close browser: %s", exc)
        self.pages = []


class BrowserPool:
    def __init__(
        self,
        launcher: BrowserLauncher | None = None,
        capacity: int = 5,
        sweep_interval: float = 60.0,
        health_timeout: float = 5.0,
        launch_timeout: float = 30.0,
        clock: Callable[[], float] | None = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.launcher = launcher or PlaywrightLauncher()
        self.capacity = capacity
        self.sweep_interval = sweep_interval
        self.health_timeout = health_timeout
        self.launch_timeout = launch_timeout
        self._clock = clock or time.monotonic
        self._idle: list[BrowserPoolEntry] = []
        self._pooled = 0
        self._in_use = 0
        self._ephemeral = 0
        self._created = 0
        self._discarded = 0
        self._closed = False
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def live_count(self) -> int:
        """Pooled entries alive right now (idle + acquired); never exceeds capacity."""
        return self._pooled

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict[str, int]:
        return {
            "capacity": self.capacity,
            "live": self._pooled,
            "idle": len(self._idle),
            "in_use": self._in_use,
            "ephemeral": self._ephemeral,
            "created": self._created,
            "discarded": self._discarded,
        }

    async def _check_health(self, entry: BrowserPoolEntry) -> None:
        try:
            if not entry.browser.is_connected():
                raise BrowserUnresponsive("browser disconnected")
            pages = entry.open_pages()
            if not pages:
                raise BrowserUnresponsive("browser has no open page")
            await asyncio.wait_for(pages[0].evaluate("1"), timeout=self.health_timeout)
        except BrowserUnresponsive:
            raise
        except Exception as exc:
            raise BrowserUnresponsive(f"health check failed: {exc}") from exc

    async def _create(self, pooled: bool) -> BrowserPoolEntry:
        browser = await asyncio.wait_for(self.launcher.launch(), timeout=self.launch_timeout)
        now = self._clock()
        entry = BrowserPoolEntry(browser=browser, pooled=pooled, created_at=now, last_used_at=now)
        try:
            await entry.new_page()
        except Exception:
            await entry.close()
            raise
        self._created += 1
        return entry

    async def _discard(self, entry: BrowserPoolEntry) -> None:
        if entry.pooled:
            self._pooled -= 1
        else:
            self._ephemeral -= 1
        self._discarded += 1
        await entry.close()

    async def acquire(self) -> BrowserPoolEntry:
        """Healthy idle entry, else a new pooled entry, else a new ephemeral one."""
        if self._closed:
            raise RuntimeError("browser pool is closed")
        while self._idle:
            entry = self._idle.pop()
            try:
                await self._check_health(entry)
            except BrowserUnresponsive as exc:
                _LOG.warning("Discarding pooled browser: %s", exc)
                await self._discard(entry)
                continue
            except BaseException:
                # Cancelled mid-check: the entry is in an unknown state, close it.
                await self._discard(entry)
                raise
            self._in_use += 1
            return entry

        pooled = self._pooled < self.capacity
        # Reserve the slot before awaiting the launch.
        if pooled:
            self._pooled += 1
        else:
            self._ephemeral += 1
        try:
            entry = await self._create(pooled)
        except BaseException:
            if pooled:
                self._pooled -= 1
            else:
                self._ephemeral -= 1
            raise
        if not pooled:
            _LOG.info("Browser pool at capacity (%d); using an ephemeral browser", self.capacity)
        self._in_use += 1
        return entry

    async def release(self, entry: BrowserPoolEntry) -> None:
        self._in_use -= 1
        entry.last_used_at = self._clock()
        if not entry.pooled or self._closed or not entry.browser.is_connected():
            await self._discard(entry)
            return
        await entry.trim_pages()
        self._idle.append(entry)

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[BrowserPoolEntry]:
        entry = await self.acquire()
        try:
            yield entry
        finally:
            await self.release(entry)

    async def sweep_idle(self) -> int:
        """Close and clear every idle entry, regardless of age."""
        idle, self._idle = self._idle, []
        for entry in idle:
            await self._discard(entry)
        if idle:
            _LOG.info("Browser pool sweep closed %d idle browser(s)", len(idle))
        return len(idle)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep_idle()
            except Exception:
                _LOG.exception("Browser pool sweep failed")

    def start(self) -> None:
        if self._sweep_task is None and not self._closed:
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def close(self) -> None:
        self._closed = True
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        await self.sweep_idle()
        await self.launcher.close()
