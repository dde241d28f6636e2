"""
HTML parsing of recommendation pages.

Pure functions over rendered HTML so that the browser driver stays thin and
the extraction rules can be tested against static fixtures.
"""
import logging
import re
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from recwalk.browser_config import BrowserConfig
from recwalk.constants import UNKNOWN_GROUP
from recwalk.models import ItemRecord

logger = logging.getLogger(__name__)

# "1.2M views", "195 тыс. просмотров", "1,234 views"
VIEWS_PATTERN = re.compile(
    r"(\d[\d\s,.]*(?:k|m|b|тыс\.?|млн\.?|млрд\.?)?\s*(?:views?|просмотра?|просмотров))",
    re.IGNORECASE,
)
VIEWS_WORD = re.compile(r"\s*(?:views?|просмотра?|просмотров)\s*$", re.IGNORECASE)

COLLECTION_CLASSES = {
    "yt-lockup-view-model--collection",
    "yt-lockup-view-model--collection-stack-2",
}

VERIFIED_ICON_SELECTOR = ".ytIconWrapperHost"


def extract_item_id(href: Optional[str]) -> str:
    """Pull the ``v`` query parameter out of a watch link."""
    if not href:
        return ""
    values = parse_qs(urlparse(href).query).get("v")
    return values[0].strip() if values else ""


def extract_popularity(row_texts: List[str]) -> str:
    """Return the raw popularity text (e.g. "1.2M") from metadata rows."""
    for text in row_texts:
        normalized = text.replace("\u00a0", " ")
        match = VIEWS_PATTERN.search(normalized)
        if match:
            value = VIEWS_WORD.sub("", match.group(1).strip()).strip()
            return value.split("•")[0].strip()
    return ""


def _is_collection(card, config: BrowserConfig) -> bool:
    classes = set(card.get("class") or [])
    if classes & COLLECTION_CLASSES:
        return True
    for marker in config.collection_markers:
        if card.select_one(marker) is not None:
            return True
    link = card.select_one('a[href*="/watch"]')
    return link is not None and "list=" in (link.get("href") or "")


def _extract_group(card, config: BrowserConfig) -> str:
    for row in card.select(config.metadata_row_selector):
        if row.select_one(config.delimiter_selector) is not None:
            continue
        span = row.select_one(config.group_selector)
        if span is None:
            continue
        for icon in span.select(VERIFIED_ICON_SELECTOR):
            icon.decompose()
        name = span.get_text(" ", strip=True)
        if name:
            return name
    return UNKNOWN_GROUP


def parse_card(card, source_node_id: str, config: BrowserConfig) -> ItemRecord:
    title_el = card.select_one(config.title_selector)
    link_el = card.select_one(config.link_selector)
    thumb_el = card.select_one(config.thumbnail_selector)
    rows = [row.get_text(" ", strip=True) for row in card.select(config.metadata_row_selector)]

    return ItemRecord(
        item_id=extract_item_id(link_el.get("href") if link_el else None),
        group_id=_extract_group(card, config),
        source_node_id=source_node_id or "",
        popularity_signal=extract_popularity(rows),
        thumbnail_ref=(thumb_el.get("src") or "") if thumb_el else "",
        title=title_el.get_text(strip=True) if title_el else "",
    )


def parse_cards(
    html: str,
    source_node_id: str,
    config: Optional[BrowserConfig] = None,
) -> List[ItemRecord]:
    """
    Extract recommendation cards from a rendered page.

    Playlists and collections are skipped. A card that fails to parse is
    logged and dropped; it never aborts the batch.

    Args:
        html: Page HTML
        source_node_id: Id of the node the page belongs to
        config: Selectors to use, defaults to BrowserConfig()

    Returns:
        List of ItemRecord in page order
    """
    config = config or BrowserConfig()
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")
    cards = soup.select(config.card_selector)
    records = []
    skipped = 0

    for position, card in enumerate(cards):
        if _is_collection(card, config):
            skipped += 1
            continue
        try:
            records.append(parse_card(card, source_node_id, config))
        except Exception as e:
            logger.warning(f"Failed to parse card {position} on {source_node_id}: {e}")

    logger.debug(
        f"Parsed {len(records)} cards from {source_node_id} "
        f"({len(cards)} found, {skipped} collections skipped)"
    )
    return records


def is_unavailable_page(html: str, url: str = "", config: Optional[BrowserConfig] = None) -> bool:
    """
    Detect the page served in place of an unavailable node.

    The unavailable URL path is checked first, then the banner title and
    body text against the known phrases.
    """
    config = config or BrowserConfig()

    if url and urlparse(url).path == config.unavailable_path:
        return True
    if not html:
        return False

    soup = BeautifulSoup(html, "lxml")
    banner = soup.select_one(config.unavailable_banner_selector)
    if banner is None:
        return False

    texts = []
    for selector in (".promo-title", ".promo-body-text"):
        element = banner.select_one(selector)
        if element is not None:
            texts.append(element.get_text(" ", strip=True).lower())

    phrases = [p.lower() for p in config.unavailable_phrases]
    return any(phrase in text for text in texts for phrase in phrases)
