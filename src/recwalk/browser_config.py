"""
Browser configuration for the Playwright page driver.

This module provides a validated Pydantic configuration model for the
browser session that walks recommendation pages, plus the CSS selectors and
phrases used to read those pages.
"""
import random
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from recwalk.config import settings


USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

DEFAULT_UNAVAILABLE_PHRASES = [
    "video unavailable",
    "this video is private",
    "this video is unavailable",
    "this video has been removed",
    "video заблокирован",
    "видео удалено",
    "видео недоступно",
]


class BrowserConfig(BaseModel):
    """
    Configuration for the PlaywrightPageDriver.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use"
    )

    timeout: int = Field(
        default=30000,
        description="Page load timeout in milliseconds",
        ge=1000,
        le=300000
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="domcontentloaded",
        description="When to consider navigation complete"
    )

    node_url_template: str = Field(
        default=settings.NODE_URL_TEMPLATE,
        description="URL of a node page, with a {node_id} placeholder"
    )

    # Collection
    scroll_count: int = Field(
        default=16,
        description="Scroll steps performed before reading the cards",
        ge=0,
        le=200
    )

    scroll_step: int = Field(
        default=1000,
        description="Pixels scrolled per step",
        ge=1
    )

    scroll_delay_ms: int = Field(
        default=1500,
        description="Pause after each scroll step in milliseconds",
        ge=0
    )

    # Page structure
    card_selector: str = Field(
        default=".yt-lockup-view-model",
        description="Selector matching one recommendation card"
    )

    collection_markers: List[str] = Field(
        default_factory=lambda: ["yt-collection-thumbnail-view-model", "yt-collections-stack"],
        description="Child elements that mark a card as a playlist or collection"
    )

    title_selector: str = Field(
        default="a.yt-lockup-metadata-view-model__title",
        description="Selector of the card title link"
    )

    link_selector: str = Field(
        default='a[href^="/watch?v="]',
        description="Selector of the link carrying the item id"
    )

    metadata_row_selector: str = Field(
        default=".yt-content-metadata-view-model__metadata-row",
        description="Selector of the metadata rows (group name, popularity)"
    )

    group_selector: str = Field(
        default="span.yt-core-attributed-string--link-inherit-color",
        description="Selector of the group name inside a metadata row"
    )

    delimiter_selector: str = Field(
        default="span.yt-content-metadata-view-model__delimiter",
        description="Delimiter marking the popularity/date row"
    )

    thumbnail_selector: str = Field(
        default="yt-thumbnail-view-model img",
        description="Selector of the thumbnail image"
    )

    ready_selector: str = Field(
        default="#player, ytd-watch-flexy",
        description="Element whose presence means a node page has rendered"
    )

    unavailable_banner_selector: str = Field(
        default="ytd-background-promo-renderer",
        description="Banner shown instead of an unavailable node"
    )

    unavailable_path: str = Field(
        default="/unavailable",
        description="URL path served for unavailable nodes"
    )

    unavailable_phrases: List[str] = Field(
        default_factory=lambda: list(DEFAULT_UNAVAILABLE_PHRASES),
        description="Lower-case phrases in the banner that mark a node unavailable"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. If None and rotate_user_agent=True, a random one is used."
    )

    rotate_user_agent: bool = Field(
        default=True,
        description="Pick a random user agent for each new context"
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def get_user_agent(self) -> Optional[str]:
        """Return the configured user agent, a rotated one, or None for the browser default."""
        if self.user_agent:
            return self.user_agent
        if self.rotate_user_agent:
            return random.choice(USER_AGENTS)
        return None

    def node_url(self, node_id: str) -> str:
        return self.node_url_template.format(node_id=node_id)

