#!/usr/bin/env python3
"""
ModMail Bot Entry Point
=======================

Relays user DMs to a staff team through one Discord thread per user.

Features:
- Environment configuration via .env
- Single instance enforcement
- Central logging of unhandled loop exceptions
- Graceful error handling

Process supervision (restart on crash) is left to the host.
"""

import asyncio
import fcntl
import os
import sys
from typing import Optional, TextIO

from dotenv import load_dotenv

from src.core.logger import logger
from src.core.config import ConfigValidationError, get_config, validate_and_log_config
from src.utils.error_handler import ErrorHandler


LOCK_FILE = os.getenv("MODMAIL_LOCK_FILE", "/tmp/modmail-bot.lock")

_lock_handle: Optional[TextIO] = None
"""Held open for the process lifetime so the flock stays in place."""


def check_running_instance() -> bool:
    """
    Take an exclusive lock so only one bot process relays at a time.

    Two relays would open duplicate threads for every user.

    Returns:
        True if lock acquired successfully, False if another instance is running
    """
    global _lock_handle

    try:
        fp = open(LOCK_FILE, "a+")
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        logger.error("❌ Another ModMail instance is already running!", [
            ("Lock File", LOCK_FILE),
        ])
        return False
    except OSError as e:
        logger.warning(f"Instance lock unavailable ({e}); continuing without it")
        return True

    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()
    _lock_handle = fp

    logger.success(f"Instance lock acquired - PID: {os.getpid()}, Lock file: {LOCK_FILE}")
    return True


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Route exceptions from orphaned tasks and callbacks to the error handler."""
    error = context.get("exception")
    if error is None:
        logger.error("Event Loop Error", [("Message", str(context.get("message")))])
        return
    ErrorHandler.handle(error, location="event_loop", message=context.get("message"))


async def main() -> None:
    """
    Main entry point for the ModMail bot.

    Handles the complete bot lifecycle:
    1. Loads environment configuration
    2. Validates required settings
    3. Initializes bot instance with proper intents
    4. Establishes connection to Discord API
    5. Handles graceful shutdown on interruption

    Raises:
        SystemExit: If configuration is invalid or bot fails to start
    """
    load_dotenv()

    try:
        validate_and_log_config()
    except ConfigValidationError as e:
        logger.error(f"❌ {e}")
        logger.error("   Please add the missing values to the .env file")
        sys.exit(1)

    config = get_config()
    asyncio.get_running_loop().set_exception_handler(_handle_loop_exception)

    logger.tree("MODMAIL STARTING", [
        ("Staff Channel", str(config.staff_channel_id)),
        ("Commands", f"/say, /reply, /close, /conversations, {config.command_prefix}reply"),
        ("Debug", "Enabled" if config.debug else "Disabled"),
    ], emoji="📬")

    from src.bot import ModmailBot

    try:
        bot: ModmailBot = ModmailBot()
        logger.info("🤖 Bot instance created successfully")

        async with bot:
            await bot.start(config.discord_token)

    except Exception as e:
        ErrorHandler.handle(
            e,
            location="main.main",
            critical=True,
            token_present=bool(config.discord_token),
        )
        sys.exit(1)


if __name__ == "__main__":
    if not check_running_instance():
        logger.error("⛔ Startup aborted - another instance is already running")
        sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
    except Exception as e:
        ErrorHandler.handle(
            e,
            location="main.__main__",
            critical=True
        )
        sys.exit(1)
