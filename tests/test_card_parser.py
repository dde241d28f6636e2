"""Tests for recommendation card parsing."""

import pytest

from recwalk.browser_config import BrowserConfig
from recwalk.card_parser import (
    extract_item_id,
    extract_popularity,
    is_unavailable_page,
    parse_cards,
)
from recwalk.constants import UNKNOWN_GROUP


def card(video_id, title, channel, views, extra_class="", extra_html="", href=None):
    href = href or f"/watch?v={video_id}"
    return f"""
    <div class="yt-lockup-view-model {extra_class}">
      <yt-thumbnail-view-model>
        <img class="ytCoreImageHost" src="https://i.ytimg.com/vi/{video_id}/hq720.jpg">
      </yt-thumbnail-view-model>
      {extra_html}
      <h3 class="yt-lockup-metadata-view-model__heading-reset">
        <a class="yt-lockup-metadata-view-model__title" href="{href}">{title}</a>
      </h3>
      <div class="yt-content-metadata-view-model__metadata-row">
        <span class="yt-core-attributed-string--link-inherit-color">{channel}<span class="ytIconWrapperHost">✓</span></span>
      </div>
      <div class="yt-content-metadata-view-model__metadata-row">
        <span>{views}</span>
        <span class="yt-content-metadata-view-model__delimiter">•</span>
        <span>5 days ago</span>
      </div>
    </div>
    """


@pytest.fixture
def page_html():
    cards = [
        card("abc123", "Chess Openings", "ChessMaster", "1.2M views"),
        card("def456", "Дебюты для начинающих", "Шахматы ТВ", "195 тыс. просмотров"),
        card("pl1", "My playlist", "Someone", "", extra_class="yt-lockup-view-model--collection"),
        card("mix1", "Mix", "YouTube", "", extra_html="<yt-collection-thumbnail-view-model></yt-collection-thumbnail-view-model>"),
        card("lst1", "Listed", "Someone", "10 views", href="/watch?v=lst1&list=PL123"),
    ]
    return "<html><body>" + "".join(cards) + "</body></html>"


class TestParseCards:
    """Tests for parse_cards."""

    def test_extracts_video_cards(self, page_html):
        records = parse_cards(page_html, "origin1")

        assert [r.item_id for r in records] == ["abc123", "def456"]

        first = records[0]
        assert first.title == "Chess Openings"
        assert first.group_id == "ChessMaster"
        assert first.popularity_signal == "1.2M"
        assert first.source_node_id == "origin1"
        assert first.thumbnail_ref == "https://i.ytimg.com/vi/abc123/hq720.jpg"

    def test_localized_popularity(self, page_html):
        records = parse_cards(page_html, "origin1")

        assert records[1].group_id == "Шахматы ТВ"
        assert records[1].popularity_signal == "195 тыс."

    def test_missing_group_falls_back_to_unknown(self):
        html = """
        <div class="yt-lockup-view-model">
          <a class="yt-lockup-metadata-view-model__title" href="/watch?v=x1">Title</a>
        </div>
        """

        records = parse_cards(html, "s")

        assert records[0].group_id == UNKNOWN_GROUP
        assert records[0].popularity_signal == ""

    def test_empty_html(self):
        assert parse_cards("", "s") == []

    def test_custom_selectors(self):
        config = BrowserConfig(card_selector="li.card", link_selector="a.link")
        html = '<ul><li class="card"><a class="link" href="/watch?v=zz9">x</a></li></ul>'

        records = parse_cards(html, "s", config)

        assert records[0].item_id == "zz9"


class TestHelpers:
    """Tests for the small extraction helpers."""

    @pytest.mark.parametrize("href,expected", [
        ("/watch?v=abc123", "abc123"),
        ("https://www.youtube.com/watch?v=abc123&t=10s", "abc123"),
        ("/shorts/abc", ""),
        (None, ""),
    ])
    def test_extract_item_id(self, href, expected):
        assert extract_item_id(href) == expected

    def test_extract_popularity_skips_rows_without_views(self):
        rows = ["ChessMaster", "21M views • 5 days ago"]

        assert extract_popularity(rows) == "21M"

    def test_extract_popularity_with_non_breaking_space(self):
        assert extract_popularity(["1\u00a0234 views"]) == "1 234"

    def test_extract_popularity_none(self):
        assert extract_popularity(["ChessMaster", "5 days ago"]) == ""


class TestUnavailablePage:
    """Tests for unavailable node detection."""

    def test_unavailable_path(self):
        assert is_unavailable_page("", "https://www.youtube.com/unavailable")

    def test_unavailable_banner(self):
        html = """
        <ytd-background-promo-renderer>
          <div class="promo-title">Video unavailable</div>
          <div class="promo-body-text">This video is private</div>
        </ytd-background-promo-renderer>
        """

        assert is_unavailable_page(html, "https://www.youtube.com/watch?v=x")

    def test_localized_banner(self):
        html = """
        <ytd-background-promo-renderer>
          <div class="promo-title">Видео недоступно</div>
        </ytd-background-promo-renderer>
        """

        assert is_unavailable_page(html)

    def test_regular_page_is_available(self, page_html):
        assert not is_unavailable_page(page_html, "https://www.youtube.com/watch?v=abc123")

    def test_unrelated_banner_is_available(self):
        html = """
        <ytd-background-promo-renderer>
          <div class="promo-title">Try Premium</div>
        </ytd-background-promo-renderer>
        """

        assert not is_unavailable_page(html)
