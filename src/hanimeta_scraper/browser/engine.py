"""Process-wide Playwright + Chromium handle.

One :class:`BrowserEngine` is created by the runtime at startup and passed
to the session manager.  Chromium is launched lazily on first use so the
API can come up (and serve DLsite, which never needs a browser) on hosts
where the browser binary is missing.

Install the browser binary once per host::

    playwright install chromium
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from hanimeta_scraper.core.exceptions import SessionError
from hanimeta_scraper.scraper.config import BROWSER_LAUNCH_ARGS

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = logging.getLogger(__name__)


class BrowserEngine:
    """Owns the single Playwright driver and Chromium browser of the process.

    Args:
        headless: Launch Chromium without a window.
        launch_args: Extra Chromium command-line flags.
    """

    def __init__(
        self,
        headless: bool = True,
        launch_args: Sequence[str] = BROWSER_LAUNCH_ARGS,
    ) -> None:
        self.headless = headless
        self.launch_args = list(launch_args)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()
        self._stopped = False

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def get_browser(self) -> Browser:
        """Return the running browser, launching (or relaunching) it if needed.

        Raises:
            SessionError: If the engine was stopped or Chromium cannot start.
        """
        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser

        async with self._lock:
            if self._stopped:
                raise SessionError("browser engine has been stopped")
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                if self._browser is not None:
                    logger.warning("browser: chromium disconnected, relaunching")
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=self.launch_args,
                )
            except PlaywrightError as exc:
                raise SessionError(f"failed to launch chromium: {exc}") from exc
            logger.info("browser: chromium launched (headless=%s)", self.headless)
            return self._browser

    async def stop(self) -> None:
        """Close the browser and the Playwright driver.  Safe to call twice."""
        async with self._lock:
            self._stopped = True
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None

        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("browser: error closing chromium: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:  # noqa: BLE001
                logger.warning("browser: error stopping playwright: %s", exc)
        logger.info("browser: engine stopped")
