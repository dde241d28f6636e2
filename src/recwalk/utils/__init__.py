"""
Utility Package.

Pure helpers shared by the selector and the metrics pipeline.
"""

from .popularity import parse_popularity
from .classifier import CyrillicTitleClassifier, KeywordClassifier

__all__ = [
    "parse_popularity",
    "CyrillicTitleClassifier",
    "KeywordClassifier",
]
