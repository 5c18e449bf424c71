"""
ModMail Bot - Commands Package
==============================

Staff command surface for the modmail relay.

DESIGN:
    Commands are parsed once into tagged variants (parser.py) and run
    through a single dispatcher (dispatcher.py), whether they arrive as
    slash commands or as prefix text in the staff channel.

    Slash commands live in Cogs loaded dynamically by the bot using
    load_extension(). To add a new command cog:
    1. Create new_command.py in this directory
    2. Create a Cog class with @app_commands.command decorators
    3. Add async def setup(bot) function at the end
    4. Add the cog to COMMAND_COGS list below

Available Commands:
    /say: Send a plain or embedded announcement (staff)
    /reply: DM a staff response to a user (staff)
    /close: Close a ticket and delete its thread (staff)
    /conversations: List open tickets (staff)
"""

# =============================================================================
# Command Cog Registry
# =============================================================================

COMMAND_COGS = [
    "src.commands.modmail",
]
"""
List of command cog module paths for dynamic loading.

DESIGN:
    Bot iterates this list and calls load_extension() for each.
    Add new command cogs here to have them loaded automatically.
"""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "COMMAND_COGS",
]
