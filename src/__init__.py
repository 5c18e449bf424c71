"""
ModMail Bot - Source Package
============================

Discord modmail relay: each user's DMs become a private ticket thread
under one staff channel, and staff replies in that thread go back to the
user as DMs.

Package Structure:
- bot.py: Bot class, lifecycle and startup audit
- commands/: Command model, dispatcher and the slash command cog
- core/: Config, logging, constants and the health endpoint
- events/: on_message routing and thread-delete cleanup
- services/modmail/: Rate limiter, content filter, registry and router
- utils/: Retry, footer, interaction and error-reporting helpers
"""
