"""
ModMail Bot - Configuration Module
==================================

Centralized configuration management with environment variable validation.

DESIGN:
    Single source of truth for all configuration, loaded from environment
    variables once at startup. There is no hot reload.

    Key patterns:
    - Singleton via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
    - Permission helper centralizes the staff permission gate
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Set
from zoneinfo import ZoneInfo

import discord


# =============================================================================
# Timezone Configuration
# =============================================================================

NY_TZ = ZoneInfo("America/New_York")
"""Eastern timezone for consistent timestamps across the bot."""


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    DESIGN:
        Required fields raise ConfigValidationError if missing.
        Optional fields have defaults matching the production setup.
        All IDs are integers to prevent string comparison bugs.

    Attributes:
        discord_token: Discord bot authentication token.
        staff_channel_id: Text channel that hosts one thread per ticket.
        required_permission: Permission flag gating every staff command.
    """

    # -------------------------------------------------------------------------
    # Required
    # -------------------------------------------------------------------------

    discord_token: str
    staff_channel_id: int

    # -------------------------------------------------------------------------
    # Optional: Command Sync
    # -------------------------------------------------------------------------

    guild_id: Optional[int] = None  # Sync commands to this guild only (instant)

    # -------------------------------------------------------------------------
    # Optional: Commands
    # -------------------------------------------------------------------------

    command_prefix: str = "!"
    required_permission: str = "administrator"

    # -------------------------------------------------------------------------
    # Optional: Anti-Spam
    # -------------------------------------------------------------------------

    spam_message_limit: int = 6         # Messages within the window that trip the limit
    spam_time_window: int = 60          # Sliding window (seconds)
    spam_cooldown_seconds: int = 300    # Cooldown once tripped
    staff_reset_window: int = 5         # Staff reply this recent clears history
    dedup_capacity: int = 100

    # -------------------------------------------------------------------------
    # Optional: Content Filter
    # -------------------------------------------------------------------------

    banned_terms: Set[str] = field(default_factory=set)  # Added to the default list

    # -------------------------------------------------------------------------
    # Optional: Runtime
    # -------------------------------------------------------------------------

    health_port: int = 3000
    presence_text: str = "DM me for any help"
    error_webhook_url: Optional[str] = None
    debug: bool = False


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Standardized color palette for Discord embeds."""

    BLURPLE = 0x5865F2  # Tickets, relays, listings
    GREEN = 0x57F287    # Confirmations, staff responses
    RED = 0xED4245      # Closures, rejections
    GOLD = 0xFEE75C     # Rate-limit notices
    ORANGE = 0xFF9800   # Staff alerts

    # Semantic aliases
    INFO = BLURPLE
    SUCCESS = GREEN
    ERROR = RED
    WARNING = GOLD
    ALERT = ORANGE


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int(value: Optional[str], name: str) -> int:
    """
    Parse string to integer with descriptive error handling.

    Raises:
        ConfigValidationError: If value is missing or not a valid integer.
    """
    if not value:
        raise ConfigValidationError(f"Missing required: {name}")
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_optional(value: Optional[str]) -> Optional[int]:
    """Parse optional string to integer, returning None on failure."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_str_set(value: Optional[str]) -> Set[str]:
    """
    Parse comma-separated string to a set of lowercase entries.

    Args:
        value: Comma-separated string (e.g., "foo,bar").

    Returns:
        Set of stripped entries, empty set if input is None or empty.
    """
    if not value:
        return set()
    return {part.strip().lower() for part in value.split(",") if part.strip()}


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: int = None,
    max_val: int = None,
) -> int:
    """
    Parse optional integer with default and range clamping.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
        if min_val is not None and parsed < min_val:
            from src.core.logger import logger
            logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
            return min_val
        if max_val is not None and parsed > max_val:
            from src.core.logger import logger
            logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
            return max_val
        return parsed
    except ValueError:
        from src.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default


def _parse_permission(value: Optional[str]) -> str:
    """
    Validate a permission flag name against discord.Permissions.

    Raises:
        ConfigValidationError: If the flag does not exist.
    """
    if not value:
        return "administrator"
    name = value.strip().lower()
    if name not in discord.Permissions.VALID_FLAGS:
        raise ConfigValidationError(f"Unknown permission for REQUIRED_PERMISSION: {value}")
    return name


def _parse_bool(value: Optional[str]) -> bool:
    """Parse "1/true/yes/on" (any case) as True; anything else is False."""
    if not value:
        return False
    return value.strip().lower() in ("1", "true", "yes", "on")


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Validate URL format for webhooks, returning None if invalid."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from src.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    DESIGN:
        Validates all required variables upfront before creating the
        Config object (fail fast).

    Returns:
        Validated Config object.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    missing = []

    discord_token = os.getenv("DISCORD_TOKEN") or os.getenv("BOT_TOKEN")
    if not discord_token:
        missing.append("DISCORD_TOKEN")

    staff_channel_id_str = os.getenv("STAFF_CHANNEL_ID")
    if not staff_channel_id_str:
        missing.append("STAFF_CHANNEL_ID")

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    prefix = os.getenv("COMMAND_PREFIX", "!").strip() or "!"

    return Config(
        discord_token=discord_token,
        staff_channel_id=_parse_int(staff_channel_id_str, "STAFF_CHANNEL_ID"),
        guild_id=_parse_int_optional(os.getenv("GUILD_ID")),
        command_prefix=prefix,
        required_permission=_parse_permission(os.getenv("REQUIRED_PERMISSION")),
        spam_message_limit=_parse_int_with_default(
            os.getenv("SPAM_MESSAGE_LIMIT"), 6, "SPAM_MESSAGE_LIMIT", min_val=2, max_val=50
        ),
        spam_time_window=_parse_int_with_default(
            os.getenv("SPAM_TIME_WINDOW"), 60, "SPAM_TIME_WINDOW", min_val=5, max_val=3600
        ),
        spam_cooldown_seconds=_parse_int_with_default(
            os.getenv("SPAM_COOLDOWN_SECONDS"), 300, "SPAM_COOLDOWN_SECONDS", min_val=10, max_val=86400
        ),
        staff_reset_window=_parse_int_with_default(
            os.getenv("STAFF_RESET_WINDOW"), 5, "STAFF_RESET_WINDOW", min_val=0, max_val=60
        ),
        dedup_capacity=_parse_int_with_default(
            os.getenv("DEDUP_CAPACITY"), 100, "DEDUP_CAPACITY", min_val=10, max_val=10000
        ),
        banned_terms=_parse_str_set(os.getenv("BANNED_TERMS")),
        health_port=_parse_int_with_default(
            os.getenv("PORT"), 3000, "PORT", min_val=1, max_val=65535
        ),
        presence_text=os.getenv("PRESENCE_TEXT", "DM me for any help"),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
        debug=_parse_bool(os.getenv("DEBUG")),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> None:
    """
    Validate configuration and log a summary at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from src.core.logger import logger

    config = get_config()

    logger.set_debug(config.debug)

    if not config.guild_id:
        logger.info("Optional config not set: GUILD_ID (commands sync globally)")

    logger.tree("Configuration Validated", [
        ("Staff Channel", str(config.staff_channel_id)),
        ("Prefix", config.command_prefix),
        ("Permission", config.required_permission),
        ("Spam Limit", f"{config.spam_message_limit} msgs / {config.spam_time_window}s"),
        ("Cooldown", f"{config.spam_cooldown_seconds}s"),
        ("Extra Banned Terms", str(len(config.banned_terms))),
    ], emoji="⚙️")


# =============================================================================
# Permission Helpers
# =============================================================================

def has_staff_permission(member, config: Optional[Config] = None) -> bool:
    """
    Check if a member holds the configured staff permission.

    Args:
        member: Discord member (users outside a guild never qualify).
        config: Config to read the permission name from.

    Returns:
        True if the member's guild permissions include the flag.
    """
    if member is None:
        return False

    permissions = getattr(member, "guild_permissions", None)
    if permissions is None:
        return False

    config = config or get_config()
    # guild_permissions already folds administrator into every flag
    return getattr(permissions, config.required_permission, False) is True


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "NY_TZ",
    "get_config",
    "load_config",
    "validate_and_log_config",
    "has_staff_permission",
]
