"""
ModMail Bot - Embed Footer Utility
==================================

Centralized footer for all embeds. The bot avatar is cached once the
gateway is ready so building an embed never needs an API call.
"""

import discord
from typing import Optional

from src.core.logger import logger


# =============================================================================
# Constants
# =============================================================================

FOOTER_TEXT = "ModMail Support"
"""Default footer text for user-facing embeds."""


# =============================================================================
# Module State
# =============================================================================

_cached_avatar_url: Optional[str] = None
"""Cached bot avatar URL."""


# =============================================================================
# Initialization
# =============================================================================

def init_footer(bot: discord.Client) -> None:
    """
    Cache the bot avatar for embed footers.

    Should be called once from on_ready.

    Args:
        bot: The Discord bot client.
    """
    global _cached_avatar_url

    if bot.user is None:
        logger.warning("Footer Init Skipped: Bot user not available")
        return

    _cached_avatar_url = bot.user.display_avatar.url
    logger.tree("Footer Initialized", [
        ("Text", FOOTER_TEXT),
        ("Avatar Cached", "Yes" if _cached_avatar_url else "No"),
    ], emoji="📝")


# =============================================================================
# Footer Setter
# =============================================================================

def set_footer(
    embed: discord.Embed,
    text: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> discord.Embed:
    """
    Set the standard footer on an embed.

    Args:
        embed: The embed to add footer to.
        text: Optional override text (e.g. "Message #3").
        avatar_url: Optional override avatar URL (uses cached if not provided).

    Returns:
        The embed with footer set.
    """
    url = avatar_url if avatar_url is not None else _cached_avatar_url
    embed.set_footer(text=text or FOOTER_TEXT, icon_url=url)
    return embed


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "FOOTER_TEXT",
    "init_footer",
    "set_footer",
]
