"""
ModMail Bot - Services Package
==============================

Stateful services owned by the bot.

DESIGN:
    Services are plain classes constructed once in bot.py and injected
    where needed. They should:
    - Be async-compatible for non-blocking I/O
    - Handle their own Discord errors gracefully
    - Keep their state behind an explicit interface

Available Services:
    MessageRouter: DM <-> ticket thread relay with spam and content gating
"""

# =============================================================================
# Service Imports
# =============================================================================

from .modmail import MessageRouter


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "MessageRouter",
]
