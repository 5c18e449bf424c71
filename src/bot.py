"""
ModMail Bot - Main Bot Class
============================

Discord client that relays user DMs to staff ticket threads.

Features:
- One public thread per user under the staff channel
- Two-way relay with spam and content gating
- Slash and prefix staff commands
- Persistent "Close Ticket" button
- Health check HTTP endpoint
"""

import sys
from datetime import datetime

import discord
from discord.ext import commands

from src.core.logger import logger
from src.core.config import get_config, NY_TZ


# =============================================================================
# Staff Channel Permission Audit
# =============================================================================

AUDITED_PERMISSIONS = [
    ("View Channel", "view_channel"),
    ("Send Messages", "send_messages"),
    ("Create Public Threads", "create_public_threads"),
    ("Send Messages in Threads", "send_messages_in_threads"),
    ("Manage Threads", "manage_threads"),
    ("Attach Files", "attach_files"),
]
"""Permissions the bot needs in the staff channel, as (label, flag)."""


# =============================================================================
# ModmailBot Class
# =============================================================================

class ModmailBot(commands.Bot):
    """
    Main Discord bot class for the modmail relay.

    DESIGN: Central owner that:
    - Holds the MessageRouter and CommandDispatcher for the cogs
    - Manages bot lifecycle (startup, shutdown)

    SERVICE INITIALIZATION ORDER:
    1. __init__:
       - Message Router (rate limiter, content filter, registry, dedup)
       - Command Dispatcher

    2. setup_hook (before on_ready):
       - Command cog loading
       - Event cog loading
       - Persistent view registration
       - Command tree syncing
       - Health Check Server

    3. on_ready:
       - Footer avatar cache
       - Presence
       - Staff channel permission audit
       - Router maintenance loop
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self) -> None:
        """Initialize the bot with the intents the relay needs."""
        self.config = get_config()

        intents = discord.Intents.none()
        intents.guilds = True
        intents.guild_messages = True
        intents.dm_messages = True
        intents.message_content = True

        super().__init__(
            command_prefix=self.config.command_prefix,
            intents=intents,
            help_command=None,
        )

        self.start_time: datetime = datetime.now(NY_TZ)
        self.health_server = None
        self._ready_initialized: bool = False

        from src.services.modmail import MessageRouter
        self.message_router = MessageRouter(self, self.config)

        from src.commands.dispatcher import CommandDispatcher
        self.command_dispatcher = CommandDispatcher(self, self.config)

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Load cogs, register views and sync commands before on_ready."""
        from src.commands import COMMAND_COGS
        for cog in COMMAND_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        from src.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

        from src.services.modmail import setup_modmail_views
        setup_modmail_views(self)

        await self._sync_commands()

        from src.core.health import HealthCheckServer
        self.health_server = HealthCheckServer(self, self.config.health_port)
        await self.health_server.start()

    async def _sync_commands(self) -> None:
        """Sync slash commands, guild-scoped when GUILD_ID is set."""
        try:
            if self.config.guild_id:
                guild = discord.Object(id=self.config.guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                scope = f"Guild {self.config.guild_id}"
            else:
                synced = await self.tree.sync()
                scope = "Global"
            logger.tree("Commands Synced", [
                ("Count", str(len(synced))),
                ("Scope", scope),
            ], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e))])

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Finish startup once the gateway session is live."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", str(self.user)),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        from src.utils.footer import init_footer
        init_footer(self)

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        await self.change_presence(
            status=discord.Status.online,
            activity=discord.CustomActivity(name=self.config.presence_text),
        )

        await self._audit_staff_channel()

        self.message_router.start()

        logger.tree("MODMAIL READY", [
            ("Staff Channel", str(self.config.staff_channel_id)),
            ("Prefix", self.config.command_prefix),
            ("Required Permission", self.config.required_permission),
            ("Presence", self.config.presence_text),
            ("Health Server", "Running" if self.health_server and self.health_server.runner else "Stopped"),
        ], emoji="📬")

    async def _audit_staff_channel(self) -> None:
        """Log which of the needed permissions the bot has in the staff channel."""
        channel = await self.message_router.get_staff_channel()
        if channel is None:
            logger.error("Staff Channel Unavailable", [
                ("Channel ID", str(self.config.staff_channel_id)),
            ])
            return

        if not isinstance(channel, discord.TextChannel):
            logger.error("Staff Channel Is Not A Text Channel", [
                ("Channel ID", str(channel.id)),
                ("Type", type(channel).__name__),
            ])
            return

        permissions = channel.permissions_for(channel.guild.me)
        items = [
            (label, "✅" if getattr(permissions, flag) else "❌")
            for label, flag in AUDITED_PERMISSIONS
        ]
        logger.tree(f"Staff Channel #{channel.name}", items, emoji="📋")

        missing = [label for label, flag in AUDITED_PERMISSIONS if not getattr(permissions, flag)]
        if missing:
            logger.warning("Missing Staff Channel Permissions", [
                ("Missing", ", ".join(missing)),
            ])

    # =========================================================================
    # Messages
    # =========================================================================

    async def on_message(self, message: discord.Message) -> None:
        """
        Skip the commands extension.

        Prefix text ("!reply", "!close", ...) is parsed by the
        CommandDispatcher from the MessageEvents cog, so process_commands
        would only raise CommandNotFound for every staff command.
        """
        return

    # =========================================================================
    # Errors
    # =========================================================================

    async def on_error(self, event_method: str, *args, **kwargs) -> None:
        """Log exceptions escaping any event listener."""
        from src.utils.error_handler import ErrorHandler

        error = sys.exc_info()[1]
        if error is None:
            return
        ErrorHandler.handle(error, location=f"event:{event_method}")

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        await self.message_router.stop()

        if self.health_server:
            await self.health_server.stop()

        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now(NY_TZ) - self.start_time)),
            ("Open Tickets Lost", str(len(self.message_router.registry))),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["ModmailBot"]
