#!/usr/bin/env python3
"""
Browser Pool

Owns at most one headless Chromium process shared by every browser-based
fetch. The process is launched lazily, shut down after a period with no
open pages, and relaunched on the next acquire if it disconnects.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from playwright.async_api import async_playwright, Browser, Page

from core.config import Config
from core.errors import ResourcePoolError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--disable-gpu',
    '--no-first-run',
    '--no-zygote',
    '--disable-blink-features=AutomationControlled',
    '--disable-extensions',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding',
    '--window-size=1280,720',
]

# Hide the webdriver flag that anti-automation checks look for
STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });
"""


class BrowserPool:
    """
    Single shared browser process with launch gating and idle shutdown

    acquire() returns a fresh page; release(page) closes that page but never
    the shared browser.
    """

    def __init__(
        self,
        launcher: Optional[Callable[[], Awaitable[Browser]]] = None,
        max_launch_attempts: int = Config.BROWSER_MAX_LAUNCH_ATTEMPTS,
        launch_retry_delay: float = Config.BROWSER_LAUNCH_RETRY_DELAY,
        launch_wait_timeout: float = Config.BROWSER_LAUNCH_WAIT_TIMEOUT,
        poll_interval: float = Config.BROWSER_LAUNCH_POLL_INTERVAL,
        idle_timeout: float = Config.BROWSER_IDLE_TIMEOUT,
    ):
        """
        Args:
            launcher: Coroutine function returning a connected browser
                (defaults to launching Chromium through Playwright)
            max_launch_attempts: Launch attempts before giving up
            launch_retry_delay: Seconds between launch attempts
            launch_wait_timeout: Seconds a caller waits on another caller's launch
            poll_interval: Polling step while waiting on a launch
            idle_timeout: Seconds without open pages before the browser is closed
        """
        self._launcher = launcher or self._launch_chromium
        self.max_launch_attempts = max_launch_attempts
        self.launch_retry_delay = launch_retry_delay
        self.launch_wait_timeout = launch_wait_timeout
        self.poll_interval = poll_interval
        self.idle_timeout = idle_timeout

        self._playwright = None
        self._browser: Optional[Browser] = None
        self._launching = False
        self._idle_task: Optional[asyncio.Task] = None
        self._active_pages = 0
        self.launch_count = 0

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _launch_chromium(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=Config.is_headless(),
            args=LAUNCH_ARGS,
        )

    async def get_browser(self) -> Browser:
        """
        Return the connected browser, launching it if necessary

        Callers arriving while a launch is in flight wait for that launch
        instead of starting a second one.

        Raises:
            ResourcePoolError: If the browser cannot be launched within the
                attempt budget, or a concurrent launch does not finish in time
        """
        if self.is_connected:
            return self._browser

        if self._launching:
            logger.info("⏳ [BROWSER] Launch in progress, waiting...")
            waited = 0.0
            while self._launching and waited < self.launch_wait_timeout:
                await asyncio.sleep(self.poll_interval)
                waited += self.poll_interval

            if self.is_connected:
                return self._browser
            if self._launching:
                raise ResourcePoolError(
                    f"Timed out after {self.launch_wait_timeout:.0f}s waiting for browser launch"
                )
            # The other launch failed; try our own

        self._launching = True
        try:
            return await self._launch_with_retries()
        finally:
            self._launching = False

    async def _launch_with_retries(self) -> Browser:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_launch_attempts + 1):
            try:
                logger.info(f"🚀 [BROWSER] Launching browser (attempt {attempt}/{self.max_launch_attempts})")
                browser = await self._launcher()
                browser.on("disconnected", self._on_disconnected)
                self._browser = browser
                self.launch_count += 1
                logger.info("✅ [BROWSER] Browser launched")
                return browser
            except Exception as e:
                last_error = e
                logger.warning(f"⚠️ [BROWSER] Launch attempt {attempt} failed: {e}")
                if attempt < self.max_launch_attempts:
                    await asyncio.sleep(self.launch_retry_delay)

        raise ResourcePoolError(
            f"Failed to launch browser after {self.max_launch_attempts} attempts: {last_error}",
            details={'attempts': self.max_launch_attempts}
        )

    def _on_disconnected(self, *args: Any) -> None:
        # Runs inside Playwright's event dispatch; must not raise
        logger.warning("⚠️ [BROWSER] Browser disconnected, state cleared")
        self._browser = None
        self._active_pages = 0
        self._cancel_idle_timer()

    async def acquire(self) -> Page:
        """
        Open a new page on the shared browser

        Returns:
            A Playwright page with the pool's viewport and user agent
        """
        browser = await self.get_browser()
        self._cancel_idle_timer()

        page = None
        try:
            page = await browser.new_page(
                viewport=Config.BROWSER_VIEWPORT,
                user_agent=Config.BROWSER_USER_AGENT,
                locale='en-US',
            )
            await page.add_init_script(STEALTH_INIT_SCRIPT)
        except Exception as e:
            logger.warning(f"⚠️ [BROWSER] Failed to open page: {e}")
            if page is not None:
                try:
                    await page.close()
                except Exception as close_error:
                    logger.warning(f"⚠️ [BROWSER] Error closing page: {close_error}")
            # Nothing else will re-arm the timer for this caller
            if self._active_pages == 0 and self._browser is not None:
                self._arm_idle_timer()
            raise

        self._active_pages += 1
        return page

    async def release(self, page: Optional[Page]) -> None:
        """Close a page from acquire(); re-arms the idle timer once no pages are open"""
        if page is not None:
            try:
                if not page.is_closed():
                    await page.close()
            except Exception as e:
                logger.warning(f"⚠️ [BROWSER] Error closing page: {e}")
            self._active_pages = max(0, self._active_pages - 1)

        if self._active_pages == 0 and self._browser is not None:
            self._arm_idle_timer()

    def _arm_idle_timer(self) -> None:
        self._cancel_idle_timer()
        self._idle_task = asyncio.create_task(self._idle_shutdown())

    def _cancel_idle_timer(self) -> None:
        task = self._idle_task
        self._idle_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _idle_shutdown(self) -> None:
        await asyncio.sleep(self.idle_timeout)
        logger.info(f"💤 [BROWSER] Idle for {self.idle_timeout:.0f}s, closing browser")
        self._idle_task = None
        await self.shutdown()

    async def shutdown(self) -> None:
        """Close the browser and the Playwright driver"""
        self._cancel_idle_timer()

        # Detach both before awaiting so an acquire during close starts a new driver
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        self._active_pages = 0
        if browser is not None:
            try:
                await browser.close()
                logger.info("🔒 [BROWSER] Browser closed")
            except Exception as e:
                logger.warning(f"⚠️ [BROWSER] Error closing browser: {e}")

        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"⚠️ [BROWSER] Error stopping Playwright: {e}")

    def get_status(self) -> Dict[str, Any]:
        return {
            'connected': self.is_connected,
            'launching': self._launching,
            'active_pages': self._active_pages,
        }
