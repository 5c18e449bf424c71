"""
ModMail Bot - Command Tests
===========================

Tests for the prefix parser, the command dispatcher and message routing.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from src.bot import ModmailBot
from src.commands.dispatcher import (
    NO_CONVERSATIONS,
    PERMISSION_DENIED,
    CommandContext,
    CommandDispatcher,
)
from src.commands.parser import (
    CloseCommand,
    CommandUsageError,
    ListConversationsCommand,
    ReplyCommand,
    SayCommand,
    parse_channel_id,
    parse_prefix_command,
    parse_user_id,
)
from src.events.messages import MessageEvents

from tests.conftest import (
    STAFF_CHANNEL_ID,
    STAFF_ID,
    THREAD_ID,
    USER_ID,
    make_attachment,
    make_member,
    make_message,
    make_thread,
    make_user,
)


# =============================================================================
# Argument Helper Tests
# =============================================================================

class TestIdParsing:
    """Tests for parse_user_id() and parse_channel_id()."""

    @pytest.mark.parametrize("token", [
        "<@123456789012345678>",
        "<@!123456789012345678>",
        "123456789012345678",
    ])
    def test_user_forms(self, token):
        assert parse_user_id(token) == 123456789012345678

    @pytest.mark.parametrize("token", ["alice", "12345", "<#123456789012345678>", ""])
    def test_user_rejects(self, token):
        assert parse_user_id(token) is None

    def test_channel_forms(self):
        assert parse_channel_id("<#123456789012345678>") == 123456789012345678
        assert parse_channel_id("123456789012345678") == 123456789012345678
        assert parse_channel_id("#general") is None


# =============================================================================
# Prefix Parser Tests
# =============================================================================

class TestParsePrefixCommand:
    """Tests for parse_prefix_command()."""

    def test_plain_text_is_not_a_command(self):
        assert parse_prefix_command("hello there") is None
        assert parse_prefix_command("") is None

    def test_unknown_command(self):
        assert parse_prefix_command("!ban 123456789012345678") is None
        assert parse_prefix_command("/") is None

    def test_reply(self):
        command = parse_prefix_command("!reply <@123456789012345678> Your issue is fixed")

        assert command == ReplyCommand(user_id=123456789012345678, text="Your issue is fixed")

    def test_reply_missing_text(self):
        with pytest.raises(CommandUsageError) as exc:
            parse_prefix_command("!reply 123456789012345678")

        assert exc.value.command == "reply"
        assert "Usage" in exc.value.render()

    def test_reply_in_thread_defaults_to_owner(self):
        command = parse_prefix_command("!reply thanks for waiting", default_user_id=USER_ID)

        assert command == ReplyCommand(user_id=USER_ID, text="thanks for waiting")

    def test_reply_explicit_id_beats_default(self):
        command = parse_prefix_command("!reply 123456789012345678 hi", default_user_id=USER_ID)

        assert command.user_id == 123456789012345678

    def test_close_with_mention_any_case(self):
        command = parse_prefix_command("!CLOSE <@!123456789012345678>")

        assert command == CloseCommand(user_id=123456789012345678)

    def test_close_defaults_to_owner(self):
        assert parse_prefix_command("!close", default_user_id=USER_ID) == CloseCommand(USER_ID)

    def test_close_without_user(self):
        with pytest.raises(CommandUsageError):
            parse_prefix_command("!close")

    def test_conversations(self):
        assert isinstance(parse_prefix_command("!conversations"), ListConversationsCommand)

    def test_slash_say_with_attachments(self):
        banner = make_attachment("banner.png")

        command = parse_prefix_command(
            f"/say <#{STAFF_CHANNEL_ID}> Welcome everyone",
            attachments=(banner,),
        )

        assert isinstance(command, SayCommand)
        assert command.channel_id == STAFF_CHANNEL_ID
        assert command.text == "Welcome everyone"
        assert command.as_embed is True
        assert command.attachments == (banner,)

    def test_say_without_channel(self):
        with pytest.raises(CommandUsageError) as exc:
            parse_prefix_command("/say hello")

        assert exc.value.command == "say"

    def test_custom_prefix(self):
        assert parse_prefix_command("?conversations", prefix="?") == ListConversationsCommand()
        assert parse_prefix_command("!conversations", prefix="?") is None


# =============================================================================
# Dispatcher Tests
# =============================================================================

@pytest.fixture
def fake_router():
    router = MagicMock()
    router.reply_to_user = AsyncMock(return_value=(True, "✅ Reply sent to alice"))
    router.close_ticket = AsyncMock(return_value=(True, "✅ Ticket closed for alice"))
    router.list_conversations = AsyncMock(return_value=None)
    router.announce = AsyncMock(return_value=(True, "📨 Embed message sent to #news"))
    return router


@pytest.fixture
def dispatcher(config, fake_router):
    bot = MagicMock()
    bot.message_router = fake_router
    bot.get_channel = MagicMock(return_value=MagicMock(spec=discord.TextChannel))
    return CommandDispatcher(bot, config)


@pytest.fixture
def admin():
    return make_member(discord.Permissions(administrator=True))


def staff_command(author, content):
    message = make_message(author, content=content, channel=MagicMock())
    message.guild = None
    return message


class TestDispatcher:
    """Tests for CommandDispatcher."""

    @pytest.mark.asyncio
    async def test_plain_text_not_handled(self, dispatcher, admin):
        assert await dispatcher.handle_prefix_message(staff_command(admin, "just chatting")) is False

    @pytest.mark.asyncio
    async def test_permission_denied(self, dispatcher, fake_router):
        member = make_member(discord.Permissions())
        message = staff_command(member, "!close 123456789012345678")

        assert await dispatcher.handle_prefix_message(message) is True

        fake_router.close_ticket.assert_not_awaited()
        assert message.reply.await_args.kwargs["content"] == PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_usage_error_shown_to_staff(self, dispatcher, admin):
        message = staff_command(admin, "!reply")

        await dispatcher.handle_prefix_message(message)

        assert "Usage" in message.reply.await_args.kwargs["content"]

    @pytest.mark.asyncio
    async def test_usage_hidden_from_non_staff(self, dispatcher):
        message = staff_command(make_member(discord.Permissions()), "!reply")

        await dispatcher.handle_prefix_message(message)

        assert message.reply.await_args.kwargs["content"] == PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_reply_runs_router(self, dispatcher, fake_router, admin):
        message = staff_command(admin, "!reply 123456789012345678 All sorted")

        await dispatcher.handle_prefix_message(message)

        fake_router.reply_to_user.assert_awaited_once()
        args = fake_router.reply_to_user.await_args
        assert args.args == (123456789012345678, "All sorted")
        assert message.reply.await_args.kwargs["content"] == "✅ Reply sent to alice"

    @pytest.mark.asyncio
    async def test_close_in_own_thread_skips_reply(self, dispatcher, fake_router, admin):
        """Closing the thread's own ticket leaves nowhere to reply."""
        message = staff_command(admin, "!close")

        await dispatcher.handle_prefix_message(message, default_user_id=USER_ID)

        fake_router.close_ticket.assert_awaited_once_with(USER_ID, closed_by=admin)
        message.reply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_say_deletes_invocation(self, dispatcher, fake_router, admin):
        message = staff_command(admin, f"!say <#{STAFF_CHANNEL_ID}> Maintenance at 5pm")

        await dispatcher.handle_prefix_message(message)

        fake_router.announce.assert_awaited_once()
        assert fake_router.announce.await_args.args[1] == "Maintenance at 5pm"
        message.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_without_tickets(self, dispatcher, admin):
        ctx = CommandContext(author=admin, channel=None, guild=None)

        result = await dispatcher.dispatch(ListConversationsCommand(), ctx)

        assert result.ok is True
        assert result.content == NO_CONVERSATIONS
        assert result.embed is None

    @pytest.mark.asyncio
    async def test_list_with_tickets(self, dispatcher, fake_router, admin):
        embed = discord.Embed(title="Active Conversations")
        fake_router.list_conversations.return_value = embed

        result = await dispatcher.dispatch(
            ListConversationsCommand(),
            CommandContext(author=admin, channel=None, guild=None),
        )

        assert result.embed is embed

    @pytest.mark.asyncio
    async def test_say_to_missing_channel(self, dispatcher, fake_router, admin):
        dispatcher.bot.get_channel.return_value = None
        dispatcher.bot.fetch_channel = AsyncMock(
            side_effect=discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Channel")
        )

        result = await dispatcher.dispatch(
            SayCommand(text="hi", channel_id=STAFF_CHANNEL_ID),
            CommandContext(author=admin, channel=None, guild=None),
        )

        assert result.ok is False
        fake_router.announce.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_variant_rejected(self, dispatcher, admin):
        with pytest.raises(TypeError):
            await dispatcher.dispatch(object(), CommandContext(author=admin, channel=None, guild=None))


# =============================================================================
# Message Event Routing Tests
# =============================================================================

@pytest.fixture
def events(mock_bot, router):
    mock_bot.command_dispatcher = MagicMock()
    mock_bot.command_dispatcher.handle_prefix_message = AsyncMock()
    return MessageEvents(mock_bot)


def user_dm(user, content="hello", message_id=1):
    return make_message(user, content=content, message_id=message_id, channel=MagicMock(spec=discord.DMChannel))


class TestMessageEvents:
    """Tests for MessageEvents.on_message() and on_raw_thread_delete()."""

    @pytest.mark.asyncio
    async def test_dm_relayed_to_thread(self, events, mock_bot, user, thread, staff_channel):
        await events.on_message(user_dm(user, "I need help"))

        staff_channel.create_thread.assert_awaited_once()
        assert thread.send.await_args.kwargs["embed"].description == "I need help"
        mock_bot.command_dispatcher.handle_prefix_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prefix_in_ticket_thread_defaults_to_owner(self, events, mock_bot, user, thread):
        await events.on_message(user_dm(user))
        message = make_message(make_member(discord.Permissions(administrator=True)), content="!close", channel=thread)

        await events.on_message(message)

        mock_bot.command_dispatcher.handle_prefix_message.assert_awaited_once_with(message, default_user_id=USER_ID)
        user.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_plain_text_in_ticket_thread_relayed_to_user(self, events, mock_bot, user, thread):
        await events.on_message(user_dm(user))

        await events.on_message(make_message(make_user(STAFF_ID, "mod"), content="On it", channel=thread))

        assert user.send.await_args.kwargs["content"] == "📨 **Support Team:**\nOn it"
        mock_bot.command_dispatcher.handle_prefix_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_staff_channel_prefix_has_no_default_user(self, events, mock_bot, staff_channel):
        message = make_message(make_user(STAFF_ID, "mod"), content=f"!reply {USER_ID} hi", channel=staff_channel)

        await events.on_message(message)

        mock_bot.command_dispatcher.handle_prefix_message.assert_awaited_once_with(message)

    @pytest.mark.asyncio
    async def test_other_channels_ignored(self, events, mock_bot, user, thread):
        other_channel = MagicMock(spec=discord.TextChannel)
        other_channel.id = STAFF_CHANNEL_ID + 1
        foreign_thread = make_thread(thread_id=THREAD_ID + 1, parent_id=STAFF_CHANNEL_ID + 1)
        await events.on_message(user_dm(user))

        await events.on_message(make_message(make_user(STAFF_ID, "mod"), content="!close", channel=other_channel))
        await events.on_message(make_message(make_user(STAFF_ID, "mod"), content="hi", channel=foreign_thread))
        await events.on_message(make_message(make_user(STAFF_ID, "mod"), content="!close", channel=foreign_thread))

        mock_bot.command_dispatcher.handle_prefix_message.assert_not_awaited()
        user.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bot_author_ignored(self, events, mock_bot, staff_channel):
        other_bot = make_user(USER_ID + 1, "otherbot", bot=True)

        await events.on_message(user_dm(other_bot))
        await events.on_message(make_message(other_bot, content="!list", channel=staff_channel))

        staff_channel.create_thread.assert_not_awaited()
        mock_bot.command_dispatcher.handle_prefix_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_thread_delete_under_staff_channel_forgets_ticket(self, events, router, user):
        await events.on_message(user_dm(user))

        await events.on_raw_thread_delete(MagicMock(parent_id=STAFF_CHANNEL_ID, thread_id=THREAD_ID))

        assert router.registry.find_open(USER_ID) is None

    @pytest.mark.asyncio
    async def test_thread_delete_elsewhere_keeps_ticket(self, events, router, user):
        await events.on_message(user_dm(user))

        await events.on_raw_thread_delete(MagicMock(parent_id=STAFF_CHANNEL_ID + 1, thread_id=THREAD_ID))

        assert router.registry.find_open(USER_ID).thread_id == THREAD_ID


# =============================================================================
# Bot Message Hook Tests
# =============================================================================

class TestBotOnMessage:
    """Tests for ModmailBot.on_message()."""

    @pytest.mark.asyncio
    async def test_prefix_text_not_passed_to_commands_extension(self):
        bot = MagicMock()
        bot.process_commands = AsyncMock()
        message = make_message(make_user(STAFF_ID, "mod"), content="!close")

        await ModmailBot.on_message(bot, message)

        bot.process_commands.assert_not_awaited()
