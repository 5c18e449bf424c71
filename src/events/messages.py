"""
ModMail Bot - Message Events
============================

Routes every incoming message to the modmail core.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from src.core.logger import logger

if TYPE_CHECKING:
    from src.bot import ModmailBot


class MessageEvents(commands.Cog):
    """Message event handlers."""

    def __init__(self, bot: "ModmailBot") -> None:
        self.bot = bot
        self.config = bot.config

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """
        Event handler for messages.

        DESIGN: Three-path message routing:
        1. DM -> user relay into the ticket thread
        2. Ticket thread -> prefix command, else staff relay to the user
        3. Staff channel -> prefix command
        """
        if message.author.bot:
            return

        router = self.bot.message_router
        dispatcher = self.bot.command_dispatcher
        channel = message.channel

        # -----------------------------------------------------------------
        # Route 1: Direct message from a user
        # -----------------------------------------------------------------
        if isinstance(channel, discord.DMChannel):
            await router.handle_user_message(message)
            return

        # -----------------------------------------------------------------
        # Route 2: Thread under the staff channel
        # -----------------------------------------------------------------
        if isinstance(channel, discord.Thread) and channel.parent_id == self.config.staff_channel_id:
            if router.is_command_text(message.content):
                owner = router.registry.resolve_user_by_thread(channel.id)
                await dispatcher.handle_prefix_message(message, default_user_id=owner)
                return
            await router.handle_staff_message(message)
            return

        # -----------------------------------------------------------------
        # Route 3: Staff channel prefix commands
        # -----------------------------------------------------------------
        if channel.id == self.config.staff_channel_id:
            await dispatcher.handle_prefix_message(message)

    @commands.Cog.listener()
    async def on_raw_thread_delete(self, payload: discord.RawThreadDeleteEvent) -> None:
        """Forget tickets whose thread was deleted by hand."""
        if payload.parent_id != self.config.staff_channel_id:
            return
        self.bot.message_router.handle_thread_deleted(payload.thread_id)


async def setup(bot: "ModmailBot") -> None:
    """Add the message events cog to the bot."""
    await bot.add_cog(MessageEvents(bot))
    logger.debug("Message Events Loaded")
