"""
ModMail Bot - Command Model
===========================

Tagged command variants shared by slash commands and the text prefix
fallback, plus the prefix parser.

DESIGN:
    Every trigger (slash command, "!reply ...", "/say ...") is parsed once
    into one of four frozen dataclasses. The dispatcher then handles one
    variant per handler and never looks at raw text.

    Prefix grammar:
        !say | /say <#channel> [message]
        !reply | /reply <userId> <message>
        !close [userId]
        !conversations
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import discord


# =============================================================================
# Command Variants
# =============================================================================

@dataclass(frozen=True)
class SayCommand:
    """Post an announcement to a channel (current channel when None)."""
    text: Optional[str]
    channel_id: Optional[int] = None
    as_embed: bool = False
    attachments: Tuple[discord.Attachment, ...] = ()


@dataclass(frozen=True)
class ReplyCommand:
    """DM a "Staff Response" to a user."""
    user_id: int
    text: str


@dataclass(frozen=True)
class CloseCommand:
    """Close the user's ticket."""
    user_id: int


@dataclass(frozen=True)
class ListConversationsCommand:
    """List open tickets."""
    pass


Command = Union[SayCommand, ReplyCommand, CloseCommand, ListConversationsCommand]


# =============================================================================
# Errors
# =============================================================================

class CommandUsageError(ValueError):
    """A recognised command with missing or malformed arguments."""

    def __init__(self, command: str, usage: str, example: str) -> None:
        self.command = command
        self.usage = usage
        self.example = example
        super().__init__(f"Usage: {usage}")

    def render(self) -> str:
        """Format the usage message shown to staff."""
        return f"❌ **Usage:** `{self.usage}`\n**Example:** `{self.example}`"


# =============================================================================
# Argument Helpers
# =============================================================================

CHANNEL_MENTION_PATTERN = re.compile(r"^<#(\d+)>$")
USER_MENTION_PATTERN = re.compile(r"^<@!?(\d+)>$")
SNOWFLAKE_PATTERN = re.compile(r"^\d{15,21}$")


def parse_channel_id(token: str) -> Optional[int]:
    """Accept "<#123>" or a bare id."""
    match = CHANNEL_MENTION_PATTERN.match(token)
    if match:
        return int(match.group(1))
    if SNOWFLAKE_PATTERN.match(token):
        return int(token)
    return None


def parse_user_id(token: str) -> Optional[int]:
    """Accept "<@123>", "<@!123>" or a bare id."""
    match = USER_MENTION_PATTERN.match(token)
    if match:
        return int(match.group(1))
    if SNOWFLAKE_PATTERN.match(token):
        return int(token)
    return None


def _split_command(content: str, prefix: str) -> Optional[Tuple[str, str]]:
    """Split "<trigger><name> rest" into (name, rest), or None if not a command."""
    for trigger in (prefix, "/"):
        if trigger and content.startswith(trigger):
            body = content[len(trigger):]
            name, _, rest = body.partition(" ")
            return name.lower(), rest.strip()
    return None


# =============================================================================
# Prefix Parser
# =============================================================================

def parse_prefix_command(
    content: str,
    prefix: str = "!",
    *,
    default_user_id: Optional[int] = None,
    attachments: Tuple[discord.Attachment, ...] = (),
) -> Optional[Command]:
    """
    Parse raw message text into a command variant.

    Args:
        content: Raw message content.
        prefix: The configured command prefix.
        default_user_id: User assumed when the id is omitted (ticket threads).
        attachments: Files attached to the message, carried by say.

    Returns:
        The parsed command, or None if the text is not a known command.

    Raises:
        CommandUsageError: If a known command has bad arguments.
    """
    if not content:
        return None

    split = _split_command(content.strip(), prefix)
    if split is None:
        return None
    name, rest = split

    if name == "say":
        channel_token, _, text = rest.partition(" ")
        channel_id = parse_channel_id(channel_token) if channel_token else None
        if channel_id is None:
            raise CommandUsageError(
                "say",
                "/say <#channel> <message>",
                "/say #announcements Hello everyone!",
            )
        return SayCommand(
            text=text.strip() or None,
            channel_id=channel_id,
            as_embed=True,
            attachments=tuple(attachments),
        )

    if name == "reply":
        user_token, _, text = rest.partition(" ")
        user_id = parse_user_id(user_token) if user_token else None
        if user_id is None and default_user_id is not None:
            user_id, text = default_user_id, rest
        text = text.strip()
        if user_id is None or not text:
            raise CommandUsageError(
                "reply",
                f"{prefix}reply <userId> <message>",
                f"{prefix}reply 123456789012345678 Hello!",
            )
        return ReplyCommand(user_id=user_id, text=text)

    if name == "close":
        user_token = rest.split(" ", 1)[0] if rest else ""
        user_id = parse_user_id(user_token) if user_token else default_user_id
        if user_id is None:
            raise CommandUsageError(
                "close",
                f"{prefix}close <userId>",
                f"{prefix}close 123456789012345678",
            )
        return CloseCommand(user_id=user_id)

    if name == "conversations":
        return ListConversationsCommand()

    return None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "CloseCommand",
    "Command",
    "CommandUsageError",
    "ListConversationsCommand",
    "ReplyCommand",
    "SayCommand",
    "parse_channel_id",
    "parse_prefix_command",
    "parse_user_id",
]
