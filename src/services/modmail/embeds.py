"""
ModMail Bot - Modmail Embeds
============================

Builders for every card the relay posts, in the thread or in a DM.

DESIGN:
    Builders are pure: they take plain values and return a discord.Embed.
    Nothing here sends or fetches, so the router decides when and where
    each card goes.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

import discord

from src.core.config import EmbedColors, NY_TZ
from src.core.constants import EMBED_DESCRIPTION_MAX, EMBED_FIELD_LIMIT, EMBED_FIELD_VALUE_MAX
from src.utils.footer import set_footer

from .constants import CLOSE_EMOJI, FILTER_EMOJI, INBOX_EMOJI, OPENED_EMOJI, SPAM_EMOJI
from .models import Conversation


# =============================================================================
# Helpers
# =============================================================================

def _truncate(text: str, limit: int) -> str:
    """Clip text to a Discord field limit."""
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def _is_image(attachment: discord.Attachment) -> bool:
    content_type = attachment.content_type or ""
    return content_type.startswith("image/")


def _relative(dt: Optional[datetime]) -> str:
    if dt is None:
        return "never"
    return discord.utils.format_dt(dt, "R")


# =============================================================================
# Thread Cards
# =============================================================================

def build_ticket_info_embed(user: discord.abc.User) -> discord.Embed:
    """
    First card posted in a new ticket thread.

    Shows who opened the ticket and how old their account is.
    """
    embed = discord.Embed(
        title=f"{INBOX_EMOJI} New ModMail Ticket",
        color=EmbedColors.INFO,
        timestamp=datetime.now(NY_TZ),
    )
    embed.set_thumbnail(url=user.display_avatar.url)
    embed.add_field(name="User", value=str(user), inline=True)
    embed.add_field(name="User ID", value=str(user.id), inline=True)
    embed.add_field(name="Account Created", value=_relative(user.created_at), inline=True)
    set_footer(embed, text="Reply directly in this thread")
    return embed


def build_relay_embed(
    author: discord.abc.User,
    content: str,
    attachments: Sequence[discord.Attachment],
    message_number: int,
) -> discord.Embed:
    """
    Mirror of one user DM inside the ticket thread.

    Attachments are listed as links; the first image is previewed.
    """
    embed = discord.Embed(color=EmbedColors.INFO, timestamp=datetime.now(NY_TZ))
    embed.set_author(name=str(author), icon_url=author.display_avatar.url)

    if content:
        embed.description = _truncate(content, EMBED_DESCRIPTION_MAX)

    if attachments:
        links = "\n".join(f"[{a.filename}]({a.url})" for a in attachments)
        embed.add_field(
            name="📎 Attachments",
            value=_truncate(links, EMBED_FIELD_VALUE_MAX),
            inline=False,
        )
        first_image = next((a for a in attachments if _is_image(a)), None)
        if first_image is not None:
            embed.set_image(url=first_image.url)

    set_footer(embed, text=f"Message #{message_number}")
    return embed


# =============================================================================
# User Notices
# =============================================================================

def build_ticket_opened_embed() -> discord.Embed:
    """One-time acknowledgment after a user's first relayed message."""
    embed = discord.Embed(
        title=f"{OPENED_EMOJI} Ticket Opened",
        description=(
            "Your support ticket has been created! Our staff team will "
            "respond to you shortly. Please be patient."
        ),
        color=EmbedColors.SUCCESS,
        timestamp=datetime.now(NY_TZ),
    )
    set_footer(embed, text="You can continue sending messages here")
    return embed


def build_ticket_closed_embed() -> discord.Embed:
    """DM sent to the user when staff close their ticket."""
    embed = discord.Embed(
        title=f"{CLOSE_EMOJI} Ticket Closed",
        description=(
            "Your support ticket has been closed by staff. If you need "
            "further assistance, feel free to send another message!"
        ),
        color=EmbedColors.ERROR,
        timestamp=datetime.now(NY_TZ),
    )
    set_footer(embed)
    return embed


def build_rate_limit_embed(cooldown_remaining: Optional[int]) -> discord.Embed:
    """Notice for a DM rejected by the spam limiter."""
    remaining = cooldown_remaining or 0
    embed = discord.Embed(
        title=f"{SPAM_EMOJI} Slow Down",
        description=(
            "You are sending messages too quickly. Your messages are not "
            f"being delivered to staff.\n\nPlease wait **{remaining}s** before "
            "sending another message."
        ),
        color=EmbedColors.WARNING,
    )
    set_footer(embed)
    return embed


def build_filtered_embed() -> discord.Embed:
    """Notice for a DM rejected by the content filter."""
    embed = discord.Embed(
        title=f"{FILTER_EMOJI} Message Not Delivered",
        description=(
            "Your message contains language that is not allowed and was not "
            "delivered to staff. Please rephrase and try again."
        ),
        color=EmbedColors.ERROR,
    )
    set_footer(embed)
    return embed


def build_staff_response_embed(
    text: str,
    icon_url: Optional[str] = None,
) -> discord.Embed:
    """DM card for a /reply sent outside the ticket thread."""
    embed = discord.Embed(
        description=_truncate(text, EMBED_DESCRIPTION_MAX),
        color=EmbedColors.SUCCESS,
        timestamp=datetime.now(NY_TZ),
    )
    embed.set_author(name="Staff Response", icon_url=icon_url)
    set_footer(embed)
    return embed


# =============================================================================
# Staff Alerts
# =============================================================================

def build_spam_alert_embed(
    user: discord.abc.User,
    message_limit: int,
    time_window: float,
    cooldown_seconds: float,
) -> discord.Embed:
    """Staff-channel alert for a user who just tripped the spam limit."""
    embed = discord.Embed(
        title=f"{SPAM_EMOJI} DM Spam Detected",
        description=f"{user.mention} hit the message limit and is on cooldown.",
        color=EmbedColors.ALERT,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(name="User", value=f"{user} (`{user.id}`)", inline=False)
    embed.add_field(name="Limit", value=f"{message_limit} msgs / {int(time_window)}s", inline=True)
    embed.add_field(name="Cooldown", value=f"{int(cooldown_seconds)}s", inline=True)
    set_footer(embed)
    return embed


def build_filter_alert_embed(
    user: discord.abc.User,
    content: str,
    matched_term: Optional[str],
) -> discord.Embed:
    """Staff-channel alert carrying the text that was blocked."""
    embed = discord.Embed(
        title=f"{FILTER_EMOJI} Filtered DM Blocked",
        color=EmbedColors.ALERT,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(name="User", value=f"{user} (`{user.id}`)", inline=False)
    embed.add_field(
        name="Message",
        value=_truncate(content, EMBED_FIELD_VALUE_MAX) or "*No text content*",
        inline=False,
    )
    if matched_term:
        embed.add_field(name="Matched", value=f"||{matched_term}||", inline=True)
    set_footer(embed)
    return embed


# =============================================================================
# Listings & Announcements
# =============================================================================

def build_conversations_embed(
    conversations: List[Conversation],
    user_labels: Iterable[str],
) -> discord.Embed:
    """
    Staff listing of open tickets.

    Args:
        conversations: Open conversations in registry order.
        user_labels: Display label per conversation, same order.
    """
    embed = discord.Embed(
        title=f"{INBOX_EMOJI} Active Conversations",
        color=EmbedColors.INFO,
        timestamp=datetime.now(NY_TZ),
    )

    for conversation, label in zip(conversations[:EMBED_FIELD_LIMIT], user_labels):
        last = conversation.last_message_at or conversation.created_at
        embed.add_field(
            name=label,
            value=(
                f"Messages: {conversation.message_count} | Last: {_relative(last)}\n"
                f"Thread: <#{conversation.thread_id}>"
            ),
            inline=False,
        )

    hidden = len(conversations) - EMBED_FIELD_LIMIT
    if hidden > 0:
        set_footer(embed, text=f"+{hidden} more")
    else:
        set_footer(embed, text=f"{len(conversations)} open")
    return embed


def build_announcement_embed(
    text: Optional[str],
    guild: Optional[discord.Guild],
    image_url: Optional[str] = None,
) -> discord.Embed:
    """Announcement card authored as the guild."""
    embed = discord.Embed(color=EmbedColors.INFO, timestamp=datetime.now(NY_TZ))
    if guild is not None:
        embed.set_author(
            name=guild.name,
            icon_url=guild.icon.url if guild.icon else None,
        )
    if text:
        embed.description = _truncate(text, EMBED_DESCRIPTION_MAX)
    if image_url:
        embed.set_image(url=image_url)
    return embed


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "build_announcement_embed",
    "build_conversations_embed",
    "build_filter_alert_embed",
    "build_filtered_embed",
    "build_rate_limit_embed",
    "build_relay_embed",
    "build_spam_alert_embed",
    "build_staff_response_embed",
    "build_ticket_closed_embed",
    "build_ticket_opened_embed",
    "build_ticket_info_embed",
]
