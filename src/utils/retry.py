"""
ModMail Bot - Retry Utilities
=============================

Retry logic for Discord lookups with exponential backoff.

Relays are deliberately not wrapped here: a failed relay is reported back
to the user, who resends.
"""

import asyncio
from typing import Callable, Any, Optional, Tuple, Type

import discord

from src.core.logger import logger

# Exceptions that should trigger a retry
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    discord.HTTPException,
    asyncio.TimeoutError,
    ConnectionError,
)

# Retrying these never helps
NON_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    discord.NotFound,
    discord.Forbidden,
)


async def retry_async(
    coro_func: Callable[..., Any],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = RETRYABLE_EXCEPTIONS,
    **kwargs,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        coro_func: Async function to call.
        *args: Arguments to pass to the function.
        max_retries: Maximum number of retry attempts.
        base_delay: Initial delay between retries (seconds).
        max_delay: Maximum delay between retries (seconds).
        exceptions: Tuple of exception types that trigger retry.
        **kwargs: Keyword arguments to pass to the function.

    Returns:
        Result of the coroutine function.

    Raises:
        The last exception if all retries fail, or a non-retryable
        exception immediately.
    """
    last_exception = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_func(*args, **kwargs)
        except NON_RETRYABLE_EXCEPTIONS:
            raise
        except exceptions as e:
            last_exception = e

            if attempt < max_retries:
                delay = min(base_delay * (2 ** attempt), max_delay)
                logger.warning(f"Retry {attempt + 1}/{max_retries}: {type(e).__name__} - retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
            else:
                logger.error(f"All {max_retries} retries failed: {type(e).__name__}: {e}")

    raise last_exception


async def safe_fetch_channel(bot, channel_id: int) -> Optional[discord.abc.GuildChannel]:
    """
    Fetch a channel or thread, cache first, with retry.

    Args:
        bot: Bot instance.
        channel_id: Channel ID to fetch.

    Returns:
        Channel object or None if not found/failed.
    """
    if not channel_id:
        return None

    channel = bot.get_channel(channel_id)
    if channel:
        return channel

    try:
        return await retry_async(
            bot.fetch_channel,
            channel_id,
            max_retries=2,
            base_delay=0.5,
        )
    except (discord.NotFound, discord.Forbidden):
        return None
    except discord.HTTPException as e:
        logger.error(f"Failed to fetch channel {channel_id}: {e}")
        return None


async def safe_fetch_user(bot, user_id: int) -> Optional[discord.User]:
    """
    Fetch a user, cache first, with retry.

    Args:
        bot: Bot instance.
        user_id: User ID to fetch.

    Returns:
        User object or None if not found/failed.
    """
    user = bot.get_user(user_id)
    if user:
        return user

    try:
        return await retry_async(
            bot.fetch_user,
            user_id,
            max_retries=2,
            base_delay=0.5,
        )
    except (discord.NotFound, discord.Forbidden):
        return None
    except discord.HTTPException as e:
        logger.error(f"Failed to fetch user {user_id}: {e}")
        return None


async def safe_send(
    channel: discord.abc.Messageable,
    content: Optional[str] = None,
    **kwargs,
) -> Optional[discord.Message]:
    """
    Send a message with retry logic, returning None on failure.

    Args:
        channel: Channel to send to.
        content: Message content.
        **kwargs: Additional arguments (embed, view, etc.)
    """
    if not channel:
        return None

    try:
        return await retry_async(
            channel.send,
            content,
            max_retries=2,
            base_delay=0.5,
            **kwargs,
        )
    except discord.HTTPException as e:
        logger.error(f"Failed to send message: {e}")
        return None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "retry_async",
    "safe_fetch_channel",
    "safe_fetch_user",
    "safe_send",
    "RETRYABLE_EXCEPTIONS",
]
