"""
ModMail Bot - Modmail Command Cog
=================================

Slash commands for staff.

Features:
    - /say [channel] <message> [embed] [attachment]: Announcement
    - /reply <userid> <message>: DM a staff response
    - /close <userid>: Close a ticket and delete its thread
    - /conversations: List open tickets

All commands share the configured permission gate and run through
the CommandDispatcher, so they behave exactly like the prefix fallback.
"""

from typing import TYPE_CHECKING, Optional, Union

import discord
from discord import app_commands
from discord.ext import commands

from src.core.logger import logger
from src.utils.interaction import safe_defer, safe_respond

from .dispatcher import PERMISSION_DENIED, CommandContext, CommandDispatcher, CommandResult
from .parser import (
    CloseCommand,
    Command,
    ListConversationsCommand,
    ReplyCommand,
    SayCommand,
    parse_user_id,
)

if TYPE_CHECKING:
    from src.bot import ModmailBot


# =============================================================================
# Modmail Cog
# =============================================================================

class ModmailCog(commands.Cog):
    """Staff slash commands for the modmail relay."""

    def __init__(self, bot: "ModmailBot") -> None:
        self.bot = bot
        self.dispatcher: CommandDispatcher = bot.command_dispatcher

        logger.tree("Modmail Cog Loaded", [
            ("Commands", "/say, /reply, /close, /conversations"),
            ("Permission", self.dispatcher.config.required_permission),
        ], emoji="📬")

    # =========================================================================
    # Shared Flow
    # =========================================================================

    async def _run(self, interaction: discord.Interaction, command: Command) -> None:
        """Gate, defer, dispatch and answer ephemerally."""
        if not self.dispatcher.is_permitted(interaction.user):
            logger.tree("Command Denied", [
                ("User", f"{interaction.user} ({interaction.user.id})"),
                ("Command", type(command).__name__),
                ("Required", self.dispatcher.config.required_permission),
            ], emoji="⛔")
            await safe_respond(interaction, PERMISSION_DENIED)
            return

        await safe_defer(interaction)

        ctx = CommandContext(
            author=interaction.user,
            channel=interaction.channel,
            guild=interaction.guild,
        )
        result: CommandResult = await self.dispatcher.dispatch(command, ctx)

        logger.tree("Slash Command", [
            ("User", f"{interaction.user} ({interaction.user.id})"),
            ("Command", type(command).__name__),
            ("Result", "OK" if result.ok else "Failed"),
        ], emoji="⌨️")

        await safe_respond(interaction, result.content, embed=result.embed)

    async def _user_id_or_usage(self, interaction: discord.Interaction, raw: str) -> Optional[int]:
        user_id = parse_user_id(raw.strip())
        if user_id is None:
            await safe_respond(interaction, "❌ That is not a valid user ID.")
        return user_id

    # =========================================================================
    # Commands
    # =========================================================================

    @app_commands.command(name="say", description="Send a message as the bot")
    @app_commands.describe(
        message="The message to send",
        channel="Channel to send to (defaults to this channel)",
        embed="Wrap the message in an embed",
        attachment="File to attach",
    )
    @app_commands.guild_only()
    async def say(
        self,
        interaction: discord.Interaction,
        message: str,
        channel: Optional[Union[discord.TextChannel, discord.Thread]] = None,
        embed: Optional[bool] = False,
        attachment: Optional[discord.Attachment] = None,
    ) -> None:
        """Send a plain or embedded announcement."""
        await self._run(interaction, SayCommand(
            text=message,
            channel_id=channel.id if channel else None,
            as_embed=bool(embed),
            attachments=(attachment,) if attachment else (),
        ))

    @app_commands.command(name="reply", description="Reply to a user via DM")
    @app_commands.describe(userid="The user's ID", message="Your reply")
    @app_commands.guild_only()
    async def reply(self, interaction: discord.Interaction, userid: str, message: str) -> None:
        """DM a "Staff Response" to a user."""
        user_id = await self._user_id_or_usage(interaction, userid)
        if user_id is None:
            return
        await self._run(interaction, ReplyCommand(user_id=user_id, text=message))

    @app_commands.command(name="close", description="Close a user's ticket")
    @app_commands.describe(userid="The user's ID")
    @app_commands.guild_only()
    async def close(self, interaction: discord.Interaction, userid: str) -> None:
        """Close a ticket and delete its thread."""
        user_id = await self._user_id_or_usage(interaction, userid)
        if user_id is None:
            return
        await self._run(interaction, CloseCommand(user_id=user_id))

    @app_commands.command(name="conversations", description="List open tickets")
    @app_commands.guild_only()
    async def conversations(self, interaction: discord.Interaction) -> None:
        """List open tickets."""
        await self._run(interaction, ListConversationsCommand())


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "ModmailBot") -> None:
    """Load the Modmail cog."""
    await bot.add_cog(ModmailCog(bot))
