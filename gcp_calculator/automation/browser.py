"""Chromium lifecycle for one estimate session.

``BrowserSessionManager`` is an async context manager that starts the
Playwright driver, launches Chromium, opens an isolated context and yields a
page. Every session gets a fresh context, so concurrent requests never share
cookies, clipboard grants or calculator state.

Release happens in the order page, context, browser, driver. Each release is
attempted independently and at most once, including when acquisition itself
failed halfway.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from gcp_calculator.core.config import DEFAULT_TIMEOUT_MS
from gcp_calculator.shared.calculator_urls import CALCULATOR_URL, calculator_origin
from gcp_calculator.shared.errors import ResourceError

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1440, "height": 1000}
DEFAULT_LOCALE = "en-US"
DEFAULT_USER_AGENT = "Mozilla/5.0 (Playwright-Automation)"
CLIPBOARD_PERMISSIONS = ["clipboard-read", "clipboard-write"]


@dataclass
class BrowserConfig:
    """Browser launch configuration."""

    headless: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    calculator_url: str = CALCULATOR_URL
    viewport_width: int = DEFAULT_VIEWPORT["width"]
    viewport_height: int = DEFAULT_VIEWPORT["height"]
    locale: str = DEFAULT_LOCALE
    user_agent: str = DEFAULT_USER_AGENT


class BrowserSessionManager:
    """Owns the driver, browser, context and page of a single session."""

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        playwright_factory: Callable = async_playwright,
    ):
        self.config = config or BrowserConfig()
        self._playwright_factory = playwright_factory
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def page(self) -> Optional[Page]:
        return self._page

    async def __aenter__(self) -> Page:
        try:
            await self._acquire()
        except Exception as e:
            logger.error(f"Browser session could not be started: {e}")
            await self.release()
            raise ResourceError(
                f"Browser session could not be started: {e}", stage="BrowserSession"
            ) from e
        return self._page

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    async def _acquire(self) -> None:
        self._playwright = await self._playwright_factory().start()
        self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            locale=self.config.locale,
            user_agent=self.config.user_agent,
        )
        # Share links may only be readable through the clipboard
        await self._context.grant_permissions(
            CLIPBOARD_PERMISSIONS, origin=calculator_origin(self.config.calculator_url)
        )
        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.config.timeout_ms)
        logger.info(
            f"Browser session started (headless={self.config.headless}, "
            f"timeout={self.config.timeout_ms}ms)"
        )

    async def release(self) -> None:
        """Close page, context, browser and driver; each at most once."""
        page, self._page = self._page, None
        context, self._context = self._context, None
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None

        for name, closer in (
            ("page", page.close if page else None),
            ("context", context.close if context else None),
            ("browser", browser.close if browser else None),
            ("driver", playwright.stop if playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Failed to close {name}: {e}")
        logger.debug("Browser session released")
