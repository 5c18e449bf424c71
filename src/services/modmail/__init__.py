"""
ModMail Bot - Modmail Service Package
=====================================

The conversation core of the bot.

Components:
    DMRateLimiter: Sliding-window spam detection with cooldown
    ContentFilter: Obfuscation-resistant banned-term matching
    ConversationRegistry: User <-> ticket thread mapping
    DedupCache: Redelivery guard for processed message ids
    MessageRouter: Orchestrates the relay in both directions
"""

from .content_filter import ContentFilter, normalize_text
from .dedup import DedupCache
from .models import Conversation, RateDecision, RateReason, RateState, RelayOutcome
from .rate_limiter import DMRateLimiter
from .registry import ConversationRegistry
from .router import MessageRouter, RelayError
from .views import ModmailCloseButton, ModmailCloseView, setup_modmail_views


__all__ = [
    "ContentFilter",
    "Conversation",
    "ConversationRegistry",
    "DMRateLimiter",
    "DedupCache",
    "MessageRouter",
    "ModmailCloseButton",
    "ModmailCloseView",
    "RateDecision",
    "RateReason",
    "RateState",
    "RelayError",
    "RelayOutcome",
    "normalize_text",
    "setup_modmail_views",
]
