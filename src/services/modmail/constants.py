"""
ModMail Bot - Modmail Constants
===============================

Thresholds, emoji and the default banned-term list for the relay.
"""

# =============================================================================
# Anti-Spam Defaults
# =============================================================================

SPAM_MESSAGE_LIMIT: int = 6
"""
Messages inside the window that trip the limit.
The message that reaches this count is itself rejected.
"""

SPAM_TIME_WINDOW: int = 60
"""Sliding window (seconds) for the spam count."""

SPAM_COOLDOWN_SECONDS: int = 300
"""Cooldown (seconds) once the limit trips. Messages are rejected outright."""

STAFF_RESET_WINDOW: int = 5
"""
A staff reply this many seconds before a user's next message clears that
user's timestamp history once. It never lifts an active cooldown.
"""

DEDUP_CAPACITY: int = 100
"""Recently processed message ids remembered for redelivery checks."""

# =============================================================================
# Content Filter
# =============================================================================

LEET_TABLE = str.maketrans({
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "8": "b",
})
"""Digit substitutions applied after stripping punctuation."""

DEFAULT_BANNED_TERMS: tuple = (
    "fuck",
    "motherfucker",
    "shit",
    "bitch",
    "bastard",
    "asshole",
    "cunt",
    "dickhead",
    "pussy",
    "whore",
    "slut",
    "wanker",
    "twat",
    "bollocks",
    "nigger",
    "nigga",
    "faggot",
    "retard",
)
"""
Default English term list.

Matching includes substring containment, so short terms that sit inside
common words ("ass" in "class") are left out on purpose.
"""

# =============================================================================
# Emoji
# =============================================================================

TICKET_EMOJI = "📩"
INBOX_EMOJI = "📬"
OPENED_EMOJI = "🎫"
CLOSE_EMOJI = "🔒"
DELIVERED_REACTION = "👍🏻"
STAFF_EMOJI = "📨"
SPAM_EMOJI = "🚫"
FILTER_EMOJI = "🤬"

# =============================================================================
# Thread Naming
# =============================================================================

THREAD_NAME_PREFIX = f"{TICKET_EMOJI} "

# =============================================================================
# Messages
# =============================================================================

GENERIC_RETRY_NOTICE = (
    "⚠️ There was an error processing your message. "
    "Please try again or contact an administrator."
)
NO_ACTIVE_TICKET = "❌ No active ticket found for this user."
