"""
ModMail Bot - Modmail Views
===========================

Persistent "Close Ticket" control attached to every ticket's info card.

DESIGN:
    The button is a DynamicItem keyed on the ticket owner's id, so it keeps
    working across restarts without any stored view state.
"""

import re
from typing import TYPE_CHECKING

import discord

from src.core.config import has_staff_permission
from src.core.logger import logger
from src.utils.interaction import safe_defer, safe_respond

from .constants import CLOSE_EMOJI

if TYPE_CHECKING:
    from src.bot import ModmailBot


class ModmailCloseView(discord.ui.View):
    """View with the close button for a ticket thread."""

    def __init__(self, user_id: int):
        super().__init__(timeout=None)
        self.add_item(ModmailCloseButton(user_id))


class ModmailCloseButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"modmail_close:(?P<user_id>\d+)"
):
    """Button that closes (deletes) the ticket thread for one user."""

    def __init__(self, user_id: int) -> None:
        super().__init__(
            discord.ui.Button(
                label="Close Ticket",
                style=discord.ButtonStyle.danger,
                emoji=CLOSE_EMOJI,
                custom_id=f"modmail_close:{user_id}"
            )
        )
        self.user_id = user_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str]
    ) -> "ModmailCloseButton":
        user_id = int(match.group("user_id"))
        return cls(user_id)

    async def callback(self, interaction: discord.Interaction) -> None:
        bot = interaction.client

        if not has_staff_permission(interaction.user, getattr(bot, "config", None)):
            logger.tree("Close Ticket Denied", [
                ("User", f"{interaction.user} ({interaction.user.id})"),
                ("Ticket Owner", str(self.user_id)),
            ], emoji="⛔")
            await safe_respond(
                interaction,
                "❌ You do not have permission to close tickets.",
            )
            return

        router = getattr(bot, "message_router", None)
        if router is None:
            logger.warning("ModmailCloseButton: message_router not available")
            await safe_respond(interaction, "Modmail service unavailable.")
            return

        await safe_defer(interaction)

        # On success the thread holding this button is gone, so only failures get a reply
        success, detail = await router.close_ticket(self.user_id, closed_by=interaction.user)
        if not success:
            await safe_respond(interaction, f"{detail} The thread will remain open.")


# =============================================================================
# Setup
# =============================================================================

def setup_modmail_views(bot: "ModmailBot") -> None:
    """Register modmail dynamic items."""
    bot.add_dynamic_items(ModmailCloseButton)
    logger.tree("Modmail Views Registered", [
        ("Close Button", "ModmailCloseButton"),
    ], emoji=CLOSE_EMOJI)


__all__ = [
    "ModmailCloseButton",
    "ModmailCloseView",
    "setup_modmail_views",
]
