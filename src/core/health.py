"""
ModMail Bot - Health Check Server
=================================

HTTP liveness endpoint for the hosting platform.

DESIGN:
    A lightweight aiohttp server in the bot's own event loop. The host
    pings it to decide whether the process is alive; it carries no core
    logic and never exposes ticket contents.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from aiohttp import web

from src.core.logger import logger
from src.core.config import NY_TZ

if TYPE_CHECKING:
    from src.bot import ModmailBot


# =============================================================================
# Health Check Server
# =============================================================================

class HealthCheckServer:
    """
    Simple HTTP health check server.

    Attributes:
        bot: Reference to the main bot instance.
        port: Port number for the HTTP server.
        app: aiohttp Application instance.
        runner: aiohttp AppRunner for lifecycle management.
    """

    def __init__(self, bot: "ModmailBot", port: int = 3000) -> None:
        self.bot = bot
        self.port = port
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None

        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/", self.health_handler)

    # =========================================================================
    # Request Handlers
    # =========================================================================

    async def health_handler(self, request: web.Request) -> web.Response:
        """
        Handle health check requests.

        "healthy" means the gateway connection is ready,
        "starting" means the bot is still logging in.
        """
        try:
            is_connected = self.bot.is_ready()
            router = getattr(self.bot, "message_router", None)

            status = {
                "status": "healthy" if is_connected else "starting",
                "bot": "ModMail",
                "connected": is_connected,
                "open_conversations": len(router.registry) if router else 0,
                "timestamp": datetime.now(NY_TZ).isoformat(),
            }

            logger.debug(f"Health check: {status['status']}")
            return web.json_response(status)

        except Exception as e:
            logger.error("Health Check Error", [
                ("Error", str(e)[:100]),
            ])
            return web.json_response(
                {"status": "error", "error": str(e)},
                status=500,
            )

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """Start the server on all interfaces without blocking the bot."""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, "0.0.0.0", self.port)
            await site.start()

            logger.tree("Health Server Started", [
                ("Port", str(self.port)),
                ("Endpoint", f"http://0.0.0.0:{self.port}/health"),
            ], emoji="🟢")

        except OSError as e:
            logger.error("Health Server Startup Failed", [
                ("Port", str(self.port)),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        """Stop the server. Safe to call even if it never started."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health check server stopped")


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["HealthCheckServer"]
