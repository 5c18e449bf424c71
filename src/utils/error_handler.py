"""
ModMail Bot - Error Handler
===========================

Detailed error context and categorized logging.

Features:
- Error categorization (Discord, network, config)
- Recovery suggestions in every log line
- Discord-specific context capture (message author, channel)
- Critical error file logging
"""

import json
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

import discord

from src.core.config import ConfigValidationError
from src.core.logger import logger, LOGS_DIR


class ErrorContext:
    """Captures and formats detailed error context"""

    @staticmethod
    def get_full_context(e: BaseException, location: str, **kwargs) -> Dict[str, Any]:
        """
        Get comprehensive error context.

        Args:
            e: The exception
            location: Where the error occurred
            **kwargs: Additional context (message, user_id, etc.)

        Returns:
            Dictionary with full error context
        """
        context = {
            'timestamp': datetime.now().isoformat(),
            'location': location,
            'error_type': type(e).__name__,
            'error_message': str(e),
            'traceback': ''.join(traceback.format_exception(type(e), e, e.__traceback__)),
            'python_version': sys.version,
            'additional_context': {k: v for k, v in kwargs.items() if k != 'message'},
        }

        msg = kwargs.get('message')
        if isinstance(msg, discord.Message):
            context['discord_context'] = {
                'guild': msg.guild.name if msg.guild else 'DM',
                'channel': getattr(msg.channel, 'name', None) or str(msg.channel.id),
                'author': str(msg.author),
                'author_id': msg.author.id,
                'content': msg.content[:100] if msg.content else None
            }

        return context


class ErrorHandler:
    """Categorized error handling with recovery hints"""

    ERROR_CATEGORIES = {
        'discord': (discord.DiscordException,),
        'network': (ConnectionError, TimeoutError, OSError),
        'config': (ConfigValidationError,),
    }

    SUGGESTIONS = {
        discord.Forbidden: "Check bot permissions in the staff channel or the user's DM settings",
        discord.NotFound: "Resource not found - thread or user may have been deleted",
        discord.HTTPException: "Discord API issue - the next event will retry",
        ConnectionError: "Network connection issue - check connectivity",
        TimeoutError: "Request timed out - the next event will retry",
        ConfigValidationError: "Fix the .env file and restart",
    }

    @classmethod
    def categorize_error(cls, e: BaseException) -> str:
        """Return the category name for an exception."""
        for category, error_types in cls.ERROR_CATEGORIES.items():
            if isinstance(e, error_types):
                return category
        return 'general'

    @classmethod
    def get_recovery_suggestion(cls, e: BaseException) -> str:
        """Return the first matching recovery suggestion (most specific first)."""
        for error_type, suggestion in cls.SUGGESTIONS.items():
            if isinstance(e, error_type):
                return suggestion
        return "Unexpected error - check logs for details"

    @classmethod
    def handle(cls, e: BaseException, location: str, critical: bool = False, **context) -> None:
        """
        Handle an error with full context.

        Args:
            e: The exception
            location: Where the error occurred
            critical: Whether this error stops execution
            **context: Additional context
        """
        category = cls.categorize_error(e)
        suggestion = cls.get_recovery_suggestion(e)
        full_context = ErrorContext.get_full_context(e, location, **context)

        error_msg = f"[{category.upper()}] in {location}"

        if critical:
            logger.critical(f"CRITICAL ERROR {error_msg}: {full_context['error_type']} - {full_context['error_message']} | Recovery: {suggestion}")
            logger.info(f"Traceback:\n{full_context['traceback']}")

            if 'discord_context' in full_context:
                dc = full_context['discord_context']
                logger.info(f"Discord Context: Guild={dc['guild']}, Channel={dc['channel']}, User={dc['author']}")

            cls._store_critical_error(full_context)
        else:
            logger.error(f"ERROR {error_msg}", [
                ("Type", full_context['error_type']),
                ("Error", str(e)[:100]),
                ("Recovery", suggestion),
            ])

    @staticmethod
    def _store_critical_error(context: Dict[str, Any], error_dir: Optional[Path] = None) -> None:
        """Store a critical error as JSON for later analysis."""
        error_dir = error_dir or LOGS_DIR / 'errors'
        try:
            error_dir.mkdir(exist_ok=True, parents=True)

            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            error_file = error_dir / f"error_{timestamp}.json"

            with open(error_file, 'w') as f:
                json.dump(context, f, indent=2, default=str)

            logger.info(f"Critical error saved to {error_file}")
        except OSError as save_error:
            logger.info(f"Failed to save error details: {save_error}")


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "ErrorContext",
    "ErrorHandler",
]
