"""
ModMail Bot - Command Dispatcher
================================

Permission gate plus one handler per command variant.

DESIGN:
    Slash commands and prefix text both end up here as a parsed Command.
    Handlers return a CommandResult instead of replying, so each surface
    answers in its own way (ephemeral response vs. message reply).
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import discord

from src.core.config import Config, get_config, has_staff_permission
from src.core.logger import logger
from src.utils.retry import safe_fetch_channel

from .parser import (
    CloseCommand,
    Command,
    CommandUsageError,
    ListConversationsCommand,
    ReplyCommand,
    SayCommand,
    parse_prefix_command,
)

if TYPE_CHECKING:
    from src.bot import ModmailBot


# =============================================================================
# Constants
# =============================================================================

PERMISSION_DENIED = "❌ You do not have permission to use this command."
NO_CONVERSATIONS = "🔭 No active conversations."


# =============================================================================
# Results
# =============================================================================

@dataclass
class CommandContext:
    """Where a command came from."""
    author: discord.abc.User
    channel: Optional[discord.abc.Messageable]
    guild: Optional[discord.Guild]


@dataclass
class CommandResult:
    """What to tell the invoking staff member."""
    ok: bool
    content: Optional[str] = None
    embed: Optional[discord.Embed] = None


# =============================================================================
# Dispatcher
# =============================================================================

class CommandDispatcher:
    """
    Runs parsed commands against the message router.

    Attributes:
        bot: The bot client (holds message_router).
        config: Bot configuration.
    """

    def __init__(self, bot: "ModmailBot", config: Optional[Config] = None) -> None:
        self.bot = bot
        self.config = config or get_config()

    @property
    def router(self):
        return self.bot.message_router

    def is_permitted(self, member) -> bool:
        """Check the configured staff permission."""
        return has_staff_permission(member, self.config)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, command: Command, ctx: CommandContext) -> CommandResult:
        """
        Run a command. The permission gate is the caller's job.

        Returns:
            CommandResult for the invoking surface to render.
        """
        if isinstance(command, SayCommand):
            return await self._handle_say(command, ctx)
        if isinstance(command, ReplyCommand):
            return await self._handle_reply(command, ctx)
        if isinstance(command, CloseCommand):
            return await self._handle_close(command, ctx)
        if isinstance(command, ListConversationsCommand):
            return await self._handle_list(command, ctx)
        raise TypeError(f"Unknown command: {type(command).__name__}")

    async def _handle_say(self, command: SayCommand, ctx: CommandContext) -> CommandResult:
        channel = ctx.channel
        if command.channel_id is not None:
            channel = await safe_fetch_channel(self.bot, command.channel_id)
        if channel is None:
            return CommandResult(False, "❌ **Error:** Unable to find that channel.")

        if not command.text and not command.attachments:
            return CommandResult(False, "❌ Nothing to send.")

        ok, detail = await self.router.announce(
            channel,
            command.text,
            as_embed=command.as_embed,
            attachments=command.attachments,
            guild=ctx.guild,
            author=ctx.author,
        )
        return CommandResult(ok, detail)

    async def _handle_reply(self, command: ReplyCommand, ctx: CommandContext) -> CommandResult:
        icon = ctx.guild.icon.url if ctx.guild is not None and ctx.guild.icon else None
        ok, detail = await self.router.reply_to_user(
            command.user_id,
            command.text,
            staff=ctx.author,
            icon_url=icon,
        )
        return CommandResult(ok, detail)

    async def _handle_close(self, command: CloseCommand, ctx: CommandContext) -> CommandResult:
        ok, detail = await self.router.close_ticket(command.user_id, closed_by=ctx.author)
        return CommandResult(ok, detail)

    async def _handle_list(self, command: ListConversationsCommand, ctx: CommandContext) -> CommandResult:
        embed = await self.router.list_conversations()
        if embed is None:
            return CommandResult(True, NO_CONVERSATIONS)
        return CommandResult(True, embed=embed)

    # =========================================================================
    # Prefix Surface
    # =========================================================================

    async def handle_prefix_message(
        self,
        message: discord.Message,
        default_user_id: Optional[int] = None,
    ) -> bool:
        """
        Parse and run a prefix command typed in a staff channel or thread.

        Args:
            message: The staff message.
            default_user_id: Ticket owner when typed inside a ticket thread.

        Returns:
            True if the text was a command (handled or refused).
        """
        usage_error: Optional[CommandUsageError] = None
        try:
            command = parse_prefix_command(
                message.content,
                self.config.command_prefix,
                default_user_id=default_user_id,
                attachments=tuple(message.attachments),
            )
        except CommandUsageError as e:
            command, usage_error = None, e

        if command is None and usage_error is None:
            return False

        name = usage_error.command if usage_error else type(command).__name__
        if not self.is_permitted(message.author):
            logger.tree("Command Denied", [
                ("User", f"{message.author} ({message.author.id})"),
                ("Command", name),
                ("Required", self.config.required_permission),
            ], emoji="⛔")
            await self._reply(message, CommandResult(False, PERMISSION_DENIED))
            return True

        if usage_error is not None:
            await self._reply(message, CommandResult(False, usage_error.render()))
            return True

        ctx = CommandContext(author=message.author, channel=message.channel, guild=message.guild)
        result = await self.dispatch(command, ctx)

        logger.tree("Prefix Command", [
            ("User", f"{message.author} ({message.author.id})"),
            ("Command", name),
            ("Result", "OK" if result.ok else "Failed"),
        ], emoji="⌨️")

        # A closed ticket thread no longer exists to reply in
        if isinstance(command, CloseCommand) and result.ok and default_user_id == command.user_id:
            return True

        await self._reply(message, result)

        if isinstance(command, SayCommand) and result.ok:
            try:
                await message.delete()
            except discord.HTTPException:
                logger.debug("Say Command Message Not Deleted", [("Message ID", str(message.id))])
        return True

    async def _reply(self, message: discord.Message, result: CommandResult) -> None:
        try:
            await message.reply(
                content=result.content,
                embed=result.embed,
                allowed_mentions=discord.AllowedMentions(replied_user=False),
            )
        except discord.HTTPException as e:
            logger.warning("Command Reply Failed", [
                ("Channel", str(message.channel.id)),
                ("Error", str(e)[:100]),
            ])


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "CommandContext",
    "CommandDispatcher",
    "CommandResult",
    "NO_CONVERSATIONS",
    "PERMISSION_DENIED",
]
