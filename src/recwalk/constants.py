# src/recwalk/constants.py
"""Centralized constants for the traversal scheduler.

This module contains magic numbers and default values that are used
across multiple modules. For user-configurable limits, see config.py
and TraversalConfig.
"""

# =============================================================================
# Data Model Constants
# =============================================================================

# Group key assigned to records that carry no group
UNKNOWN_GROUP = "unknown"

# Event name delivered to index subscribers on every mutation
STATE_CHANGED_EVENT = "state_changed"


# =============================================================================
# Selection Constants
# =============================================================================

# Number of least-populated groups considered by the selector
TOP_GROUPS_LIMIT = 10

# Minimum distinct groups before frontier-only selection is allowed
MIN_GROUPS_FOR_FRONTIER = 2

# Global count that identifies a singleton group for the popularity tie-break
SINGLETON_GROUP_COUNT = 1


# =============================================================================
# Metrics Constants
# =============================================================================

# Rolling window capacity for the thematic average
ROLLING_WINDOW_SIZE = 10

# Share of a group's titled items that must match (strictly greater than)
THEMATIC_MATCH_THRESHOLD_PERCENT = 50.0

# Health bands for the rolling average
ROLLING_AVERAGE_GOOD = 7.0
ROLLING_AVERAGE_ATTENTION = 5.0


# =============================================================================
# Traversal Constants
# =============================================================================

DEFAULT_MAX_ATTEMPTS_PER_TRANSITION = 3
DEFAULT_MAX_SELECTION_RETRIES = 5
DEFAULT_MAX_NO_PROGRESS_STREAK = 3

# Readiness polling after navigation (milliseconds)
READY_TIMEOUT_MS = 5000
READY_POLL_INTERVAL_MS = 500

# Pause after the reload fallback between attempts (seconds)
RETRY_PAUSE_SECONDS = 2.0


# =============================================================================
# Popularity Parsing Constants
# =============================================================================

POPULARITY_MULTIPLIERS = {
    "k": 1_000,
    "тыс": 1_000,
    "m": 1_000_000,
    "млн": 1_000_000,
    "b": 1_000_000_000,
    "млрд": 1_000_000_000,
}

# Text values that mean "no signal"
UNKNOWN_POPULARITY_MARKERS = frozenset({
    "unknown",
    "неизвестно",
    "n/a",
    "-",
    "—",
})

THUMBNAIL_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
