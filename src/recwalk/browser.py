"""
Playwright-backed page driver.

One browser page serves as collector, navigator and both probes for a
traversal. Designed to be used as an async context manager:

    async with PlaywrightPageDriver(config) as driver:
        engine = TraversalEngine(
            collector=driver, navigator=driver,
            availability_probe=driver, readiness_probe=driver, ...
        )
"""
import asyncio
import logging
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from recwalk.browser_config import BrowserConfig
from recwalk.card_parser import is_unavailable_page, parse_cards
from recwalk.interfaces import AvailabilityProbe, Collector, Navigator, ReadinessProbe
from recwalk.models import ItemRecord

logger = logging.getLogger(__name__)


class PlaywrightPageDriver(Collector, Navigator, AvailabilityProbe, ReadinessProbe):
    """Drives a single Playwright page through recommendation nodes."""

    DESKTOP_VIEWPORT = {"width": 1920, "height": 1080}

    def __init__(self, config: Optional[BrowserConfig] = None, page=None):
        """
        Initialize the driver.

        Args:
            config: BrowserConfig instance with driver settings
            page: Existing Playwright page to drive instead of launching a browser
        """
        self._config = config or BrowserConfig()
        self._playwright = None
        self._browser = None
        self._context = None
        self.page = page

        logger.debug(f"PlaywrightPageDriver initialized with config: {self._config}")

    @property
    def config(self) -> BrowserConfig:
        return self._config

    async def __aenter__(self) -> "PlaywrightPageDriver":
        """Enter async context manager, launching browser and page."""
        if self.page is not None:
            return self

        logger.info(
            f"Launching {self._config.browser_type} browser (headless={self._config.headless})"
        )

        self._playwright = await async_playwright().start()
        browser_launcher = getattr(self._playwright, self._config.browser_type)
        self._browser = await browser_launcher.launch(headless=self._config.headless)

        context_options = {"viewport": self.DESKTOP_VIEWPORT}
        user_agent = self._config.get_user_agent()
        if user_agent:
            context_options["user_agent"] = user_agent
        self._context = await self._browser.new_context(**context_options)
        self._context.set_default_timeout(self._config.timeout)
        self.page = await self._context.new_page()

        logger.info("Browser launched successfully")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager, closing browser."""
        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            logger.info("Closing browser")
            await self._browser.close()
            self._browser = None
            self.page = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    def _require_page(self):
        if self.page is None:
            raise RuntimeError("PlaywrightPageDriver is not started, use it as a context manager")
        return self.page

    # ------------------------------------------------------------------
    # Navigator
    # ------------------------------------------------------------------

    async def go_to(self, node_id: str) -> bool:
        page = self._require_page()
        url = self._config.node_url(node_id)
        try:
            response = await page.goto(
                url, wait_until=self._config.wait_until, timeout=self._config.timeout
            )
        except PlaywrightError as e:
            logger.warning(f"Navigation to {url} failed: {e}")
            return False

        if response is not None and response.status >= 400:
            logger.warning(f"Navigation to {url} returned HTTP {response.status}")
            return False

        logger.debug(f"Navigated to {url}")
        return True

    async def current_node(self) -> Optional[str]:
        page = self._require_page()
        values = parse_qs(urlparse(page.url).query).get("v")
        return values[0] if values else None

    async def reload(self) -> None:
        page = self._require_page()
        await page.reload(wait_until=self._config.wait_until, timeout=self._config.timeout)

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    async def is_available(self, node_id: str) -> bool:
        page = self._require_page()
        try:
            html = await page.content()
        except PlaywrightError as e:
            # A failed check never blocks the traversal
            logger.warning(f"Availability check for {node_id} failed: {e}")
            return True
        return not is_unavailable_page(html, page.url, self._config)

    async def is_ready(self, node_id: str) -> bool:
        page = self._require_page()
        if await self.current_node() != node_id:
            return False
        element = await page.query_selector(self._config.ready_selector)
        return element is not None

    # ------------------------------------------------------------------
    # Collector
    # ------------------------------------------------------------------

    async def scroll(self, count: Optional[int] = None) -> None:
        """Scroll down to make the page load more recommendations."""
        page = self._require_page()
        count = self._config.scroll_count if count is None else count
        delay = self._config.scroll_delay_ms / 1000

        for step in range(count):
            await page.evaluate("(step) => window.scrollBy(0, step)", self._config.scroll_step)
            if delay > 0:
                await asyncio.sleep(delay)
            logger.debug(f"Scroll {step + 1}/{count} done")

    async def collect(self, origin: Optional[str]) -> List[ItemRecord]:
        page = self._require_page()
        source = origin or await self.current_node() or ""

        await self.scroll()
        html = await page.content()
        records = parse_cards(html, source, self._config)

        logger.info(f"Collected {len(records)} cards from {source or page.url}")
        return records
