"""
ModMail Bot - Centralized Constants
===================================

Magic numbers shared across modules. Modmail-specific thresholds live in
src/services/modmail/constants.py.
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60

# =============================================================================
# Interval Constants (in seconds)
# =============================================================================

MAINTENANCE_INTERVAL = 5 * SECONDS_PER_MINUTE   # Idle rate-state / lock eviction
THREAD_CACHE_TTL = 5 * SECONDS_PER_MINUTE       # Cached Thread objects

# =============================================================================
# Discord Limits
# =============================================================================

THREAD_NAME_MAX = 100
EMBED_DESCRIPTION_MAX = 4096
EMBED_FIELD_VALUE_MAX = 1024
EMBED_FIELD_LIMIT = 25
THREAD_CACHE_MAX = 50

# Minutes of inactivity before Discord auto-archives a ticket thread
THREAD_AUTO_ARCHIVE_MINUTES = 1440

# =============================================================================
# Logging
# =============================================================================

LOG_PREVIEW_LENGTH = 50   # Characters of message content shown in log trees

# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "SECONDS_PER_MINUTE",
    "MAINTENANCE_INTERVAL",
    "THREAD_CACHE_TTL",
    "THREAD_NAME_MAX",
    "EMBED_DESCRIPTION_MAX",
    "EMBED_FIELD_VALUE_MAX",
    "EMBED_FIELD_LIMIT",
    "THREAD_CACHE_MAX",
    "THREAD_AUTO_ARCHIVE_MINUTES",
    "LOG_PREVIEW_LENGTH",
]
