"""
Title classifiers used by the thematic metrics.

A classifier answers one question about a title: does it belong to the
theme the crawl is hunting for. The default classifier checks whether a
title is written mostly in Cyrillic script.
"""
import re

from recwalk.interfaces import Classifier

_LETTER_PATTERN = re.compile(r"[^\W\d_]", re.UNICODE)
_CYRILLIC_PATTERN = re.compile(r"[\u0400-\u04ff]")


class CyrillicTitleClassifier(Classifier):
    """Matches titles whose letters are mostly Cyrillic."""

    def __init__(self, min_share: float = 0.5):
        """
        Args:
            min_share: Minimum share of Cyrillic letters among all letters.
        """
        self.min_share = min_share

    def is_match(self, title: str) -> bool:
        if not title:
            return False

        letters = _LETTER_PATTERN.findall(title)
        if not letters:
            return False

        cyrillic = sum(1 for ch in letters if _CYRILLIC_PATTERN.match(ch))
        return cyrillic / len(letters) >= self.min_share


class KeywordClassifier(Classifier):
    """Matches titles containing any of the given keywords (case-insensitive)."""

    def __init__(self, keywords):
        self.keywords = [k.lower() for k in keywords if k]

    def is_match(self, title: str) -> bool:
        if not title:
            return False
        lowered = title.lower()
        return any(k in lowered for k in self.keywords)
