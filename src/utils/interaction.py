"""
ModMail Bot - Interaction Utilities
===================================

Shared helpers for Discord interaction handling.

Provides safe_respond() so slash commands and buttons never have to
check interaction.response.is_done() themselves.
"""

from typing import Any, Optional, Union

import discord

from src.core.logger import logger


async def safe_respond(
    interaction: discord.Interaction,
    content: Optional[str] = None,
    *,
    embed: Optional[discord.Embed] = None,
    ephemeral: bool = True,
    allowed_mentions: Optional[discord.AllowedMentions] = None,
) -> Optional[Union[discord.InteractionMessage, discord.WebhookMessage]]:
    """
    Respond to an interaction via response or followup, whichever applies.

    Args:
        interaction: The Discord interaction to respond to.
        content: The message content.
        embed: A single embed to send.
        ephemeral: Whether the response is ephemeral (default True).
        allowed_mentions: Allowed mentions configuration.

    Returns:
        The sent message if successful, None if failed.
    """
    kwargs: dict[str, Any] = {"ephemeral": ephemeral}

    if content is not None:
        kwargs["content"] = content
    if embed is not None:
        kwargs["embed"] = embed
    if allowed_mentions is not None:
        kwargs["allowed_mentions"] = allowed_mentions

    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(**kwargs)
            return None
        return await interaction.followup.send(**kwargs)

    except discord.HTTPException as e:
        # Expected for expired interactions or deleted channels
        logger.debug(f"safe_respond failed: {e.status} - {str(e)[:50]}")
        return None


async def safe_defer(
    interaction: discord.Interaction,
    *,
    ephemeral: bool = True,
    thinking: bool = False,
) -> bool:
    """
    Safely defer an interaction response.

    Returns:
        True if deferred successfully, False if already responded or failed.
    """
    try:
        if interaction.response.is_done():
            return False
        await interaction.response.defer(ephemeral=ephemeral, thinking=thinking)
        return True
    except discord.HTTPException:
        return False


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["safe_respond", "safe_defer"]
