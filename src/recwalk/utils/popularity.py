"""
Popularity signal parsing.

Turns free-text counters scraped from cards ("1.2M views",
"195 тыс. просмотров", "15K") into integers. Anything that cannot be read
as a counter parses to 0.
"""
import re
from typing import Any

from recwalk.constants import (
    POPULARITY_MULTIPLIERS,
    THUMBNAIL_EXTENSIONS,
    UNKNOWN_POPULARITY_MARKERS,
)

# number, then an optional multiplier suffix
_POPULARITY_PATTERN = re.compile(
    r"(\d[\d\s\u00a0\u202f,.]*)\s*(млрд|млн|тыс|[kmb])?(?![a-zа-я])",
    re.IGNORECASE,
)

_URL_PATTERN = re.compile(r"^(https?:)?//", re.IGNORECASE)


def _is_thumbnail_ref(text: str) -> bool:
    lowered = text.lower()
    if _URL_PATTERN.match(lowered):
        return True
    return lowered.split("?", 1)[0].endswith(THUMBNAIL_EXTENSIONS)


def parse_popularity(value: Any) -> int:
    """
    Parse a popularity signal into an integer.

    Args:
        value: Raw signal, usually a string.

    Returns:
        Parsed count, or 0 for empty, unknown, thumbnail-URL or unparsable input.

    Examples:
        >>> parse_popularity("1.2M")
        1200000
        >>> parse_popularity("195 тыс. просмотров")
        195000
        >>> parse_popularity("1,234 views")
        1234
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))

    text = str(value).strip()
    if not text:
        return 0
    if text.lower() in UNKNOWN_POPULARITY_MARKERS or _is_thumbnail_ref(text):
        return 0

    match = _POPULARITY_PATTERN.search(text)
    if not match:
        return 0

    number = re.sub(r"[\s\u00a0\u202f]", "", match.group(1)).rstrip(",.")
    suffix = (match.group(2) or "").lower()

    if suffix:
        multiplier = POPULARITY_MULTIPLIERS[suffix]
        number = number.replace(",", ".")
        # "1.234.5" style inputs keep only the last separator as decimal point
        if number.count(".") > 1:
            head, _, tail = number.rpartition(".")
            number = head.replace(".", "") + "." + tail
    else:
        multiplier = 1
        number = number.replace(",", "").replace(".", "")

    try:
        return int(round(float(number) * multiplier))
    except ValueError:
        return 0
