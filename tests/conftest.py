"""
ModMail Bot - Test Fixtures
===========================

Shared fixtures for all tests.

Discord objects are MagicMock/AsyncMock doubles over the real discord.py
classes; spec= is used wherever the code under test does isinstance checks.
"""

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up test environment before importing modules
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="modmail-test-logs-"))

import discord  # noqa: E402

from src.core.config import Config  # noqa: E402


STAFF_CHANNEL_ID = 1000000000000000001
THREAD_ID = 2000000000000000001
USER_ID = 3000000000000000001
STAFF_ID = 4000000000000000001


# =============================================================================
# Discord Error Doubles
# =============================================================================

def make_not_found(text: str = "Unknown Channel") -> discord.NotFound:
    """Real discord.NotFound built on a fake response."""
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), text)


def make_forbidden(text: str = "Cannot send messages to this user") -> discord.Forbidden:
    """Real discord.Forbidden built on a fake response."""
    return discord.Forbidden(MagicMock(status=403, reason="Forbidden"), text)


def make_http_error(text: str = "Internal Server Error") -> discord.HTTPException:
    """Real discord.HTTPException built on a fake response."""
    return discord.HTTPException(MagicMock(status=500, reason="Server Error"), text)


# =============================================================================
# Discord Object Doubles
# =============================================================================

def make_user(user_id: int = USER_ID, name: str = "alice", bot: bool = False) -> MagicMock:
    """Create a user double."""
    user = MagicMock()
    user.id = user_id
    user.name = name
    user.bot = bot
    user.mention = f"<@{user_id}>"
    user.created_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
    user.display_avatar.url = f"https://cdn.example.com/avatars/{user_id}.png"
    user.__str__.return_value = name
    user.send = AsyncMock()
    return user


def make_member(permissions: discord.Permissions, user_id: int = STAFF_ID, name: str = "mod") -> MagicMock:
    """Create a guild member double with the given permissions."""
    member = make_user(user_id=user_id, name=name)
    member.guild_permissions = permissions
    return member


def make_attachment(
    filename: str = "photo.png",
    content_type: str = "image/png",
) -> MagicMock:
    """Create an attachment double."""
    attachment = MagicMock(spec=discord.Attachment)
    attachment.filename = filename
    attachment.url = f"https://cdn.example.com/attachments/{filename}"
    attachment.content_type = content_type
    attachment.to_file = AsyncMock(return_value=MagicMock(spec=discord.File))
    return attachment


def make_thread(thread_id: int = THREAD_ID, parent_id: int = STAFF_CHANNEL_ID) -> MagicMock:
    """Create a ticket thread double."""
    thread = MagicMock(spec=discord.Thread)
    thread.id = thread_id
    thread.name = "📩 alice"
    thread.parent_id = parent_id
    thread.mention = f"<#{thread_id}>"
    thread.send = AsyncMock()
    thread.delete = AsyncMock()
    return thread


def make_staff_channel(thread: MagicMock) -> MagicMock:
    """Create the staff text channel double; create_thread returns `thread`."""
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = STAFF_CHANNEL_ID
    channel.name = "modmail"
    channel.mention = f"<#{STAFF_CHANNEL_ID}>"
    channel.create_thread = AsyncMock(return_value=thread)
    channel.send = AsyncMock()
    return channel


def make_message(
    author: MagicMock,
    content: str = "hello",
    message_id: int = 1,
    channel: MagicMock = None,
    attachments=None,
) -> MagicMock:
    """Create a message double."""
    message = MagicMock()
    message.id = message_id
    message.author = author
    message.content = content
    message.attachments = attachments or []
    message.channel = channel if channel is not None else MagicMock()
    message.guild = None
    message.reply = AsyncMock()
    message.add_reaction = AsyncMock()
    message.delete = AsyncMock()
    return message


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config():
    """Config with test values and default thresholds."""
    return Config(discord_token="test-token", staff_channel_id=STAFF_CHANNEL_ID)


@pytest.fixture
def user():
    """A regular (non-bot) user."""
    return make_user()


@pytest.fixture
def thread():
    """A ticket thread under the staff channel."""
    return make_thread()


@pytest.fixture
def staff_channel(thread):
    """The staff channel; new tickets get `thread`."""
    return make_staff_channel(thread)


@pytest.fixture
def mock_bot(config, user, thread, staff_channel):
    """
    Bot double resolving the staff channel, the ticket thread and the user.

    Unknown channels raise NotFound on fetch.
    """
    bot = MagicMock()
    bot.config = config

    channels = {STAFF_CHANNEL_ID: staff_channel}

    def get_channel(channel_id):
        if channel_id == thread.id and staff_channel.create_thread.await_count:
            return thread
        return channels.get(channel_id)

    bot.get_channel = MagicMock(side_effect=get_channel)
    bot.fetch_channel = AsyncMock(side_effect=make_not_found())
    bot.get_user = MagicMock(side_effect=lambda uid: user if uid == user.id else None)
    bot.fetch_user = AsyncMock(side_effect=make_not_found("Unknown User"))
    return bot


@pytest.fixture
def router(mock_bot, config):
    """A MessageRouter wired to the bot double."""
    from src.services.modmail.router import MessageRouter

    router = MessageRouter(mock_bot, config)
    mock_bot.message_router = router
    return router
