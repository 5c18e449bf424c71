"""
ModMail Bot - Message Router
============================

Orchestrates both relay directions, ticket close, direct replies,
announcements and the conversation listing.

DESIGN:
    The router owns one instance of each modmail component and is the
    only place they meet Discord:

    User DM -> dedup -> rate limiter -> content filter
            -> registry lookup-or-create -> relay into thread -> record

    Staff thread message -> resolve owner -> DM relay -> staff reset

    Registry mutation happens only after the relay send succeeds, so a
    failed relay leaves the conversation exactly as it was. The awaited
    lookup-create-relay-record sequence runs under a per-user lock because
    discord.py dispatches each event as its own task.
"""

import asyncio
import time
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import discord

from src.core.config import Config, get_config
from src.core.constants import (
    EMBED_FIELD_LIMIT,
    LOG_PREVIEW_LENGTH,
    MAINTENANCE_INTERVAL,
    THREAD_AUTO_ARCHIVE_MINUTES,
    THREAD_CACHE_MAX,
    THREAD_CACHE_TTL,
    THREAD_NAME_MAX,
)
from src.core.logger import logger
from src.utils.async_utils import create_safe_task
from src.utils.error_handler import ErrorHandler
from src.utils.retry import safe_fetch_channel, safe_fetch_user, safe_send

from .constants import (
    CLOSE_EMOJI,
    DELIVERED_REACTION,
    FILTER_EMOJI,
    GENERIC_RETRY_NOTICE,
    NO_ACTIVE_TICKET,
    STAFF_EMOJI,
    THREAD_NAME_PREFIX,
    TICKET_EMOJI,
)
from .content_filter import ContentFilter
from .dedup import DedupCache
from .embeds import (
    build_announcement_embed,
    build_conversations_embed,
    build_filter_alert_embed,
    build_filtered_embed,
    build_rate_limit_embed,
    build_relay_embed,
    build_spam_alert_embed,
    build_staff_response_embed,
    build_ticket_closed_embed,
    build_ticket_info_embed,
    build_ticket_opened_embed,
)
from .models import RateReason, RelayOutcome
from .rate_limiter import DMRateLimiter
from .registry import ConversationRegistry
from .views import ModmailCloseView

if TYPE_CHECKING:
    from src.bot import ModmailBot


# =============================================================================
# Constants
# =============================================================================

STAFF_REPLY_HEADER = f"{STAFF_EMOJI} **Support Team:**"
DM_FAILED_NOTICE = "❌ **Error:** Unable to send DM. User may have DMs disabled."
CLOSE_REASON = "Ticket closed by staff"


class RelayError(Exception):
    """Raised when a user message cannot be placed into its ticket thread."""

    pass


def _preview(text: Optional[str]) -> str:
    """Shorten message content for log trees."""
    if not text:
        return "(no text)"
    if len(text) > LOG_PREVIEW_LENGTH:
        return text[:LOG_PREVIEW_LENGTH] + "..."
    return text


def _thread_name(user: discord.abc.User) -> str:
    name = f"{THREAD_NAME_PREFIX}{user.name}"
    if len(name) > THREAD_NAME_MAX:
        name = name[:THREAD_NAME_MAX - 3] + "..."
    return name


# =============================================================================
# Message Router
# =============================================================================

class MessageRouter:
    """
    Relay orchestrator between user DMs and staff ticket threads.

    Attributes:
        bot: The bot client.
        config: Bot configuration.
        rate_limiter: Per-user spam detector.
        content_filter: Banned-term scanner.
        registry: Open conversations.
        dedup: Recently processed message ids.
    """

    def __init__(
        self,
        bot: "ModmailBot",
        config: Optional[Config] = None,
        rate_limiter: Optional[DMRateLimiter] = None,
        content_filter: Optional[ContentFilter] = None,
        registry: Optional[ConversationRegistry] = None,
        dedup: Optional[DedupCache] = None,
    ) -> None:
        self.bot = bot
        self.config = config or get_config()

        if rate_limiter is None:
            rate_limiter = DMRateLimiter(
                message_limit=self.config.spam_message_limit,
                time_window=self.config.spam_time_window,
                cooldown_seconds=self.config.spam_cooldown_seconds,
                staff_reset_window=self.config.staff_reset_window,
            )
        if content_filter is None:
            content_filter = ContentFilter(extra_terms=self.config.banned_terms)
        if registry is None:
            registry = ConversationRegistry()
        if dedup is None:
            dedup = DedupCache(self.config.dedup_capacity)

        self.rate_limiter = rate_limiter
        self.content_filter = content_filter
        self.registry = registry
        self.dedup = dedup

        self._staff_channel: Optional[discord.TextChannel] = None
        self._thread_cache: Dict[int, Tuple[discord.Thread, float]] = {}
        self._user_locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}  # Holders plus waiters per user lock
        self._maintenance_task: Optional[asyncio.Task] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the background maintenance loop."""
        if self._maintenance_task is not None and not self._maintenance_task.done():
            return
        self._maintenance_task = create_safe_task(self._maintenance_loop(), "Modmail Maintenance")
        logger.tree("Message Router Started", [
            ("Staff Channel", str(self.config.staff_channel_id)),
            ("Spam Limit", f"{self.rate_limiter.message_limit} msgs / {self.rate_limiter.time_window}s"),
            ("Cooldown", f"{self.rate_limiter.cooldown_seconds}s"),
            ("Filter Terms", str(len(self.content_filter.terms))),
        ], emoji=TICKET_EMOJI)

    async def stop(self) -> None:
        """Cancel the maintenance loop."""
        if self._maintenance_task is None:
            return
        self._maintenance_task.cancel()
        try:
            await self._maintenance_task
        except asyncio.CancelledError:
            pass
        self._maintenance_task = None

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(MAINTENANCE_INTERVAL)
            self.run_maintenance()

    def run_maintenance(self, now: Optional[float] = None) -> Dict[str, int]:
        """
        Evict idle rate state, unused locks and expired thread cache entries.

        Returns:
            Counts of evicted items per kind.
        """
        now = time.monotonic() if now is None else now

        rate_evicted = self.rate_limiter.prune_idle(now)

        idle_locks = [uid for uid in self._user_locks if uid not in self._lock_users]
        for uid in idle_locks:
            del self._user_locks[uid]

        expired = [
            tid for tid, (_, cached_at) in self._thread_cache.items()
            if now - cached_at >= THREAD_CACHE_TTL
        ]
        for tid in expired:
            del self._thread_cache[tid]

        stats = {
            "rate_states": rate_evicted,
            "locks": len(idle_locks),
            "threads": len(expired),
        }
        if any(stats.values()):
            logger.tree("Modmail Maintenance", [
                ("Rate States Evicted", str(rate_evicted)),
                ("Locks Released", str(len(idle_locks))),
                ("Thread Cache Expired", str(len(expired))),
                ("Open Tickets", str(len(self.registry))),
            ], emoji="🧹")
        return stats

    # =========================================================================
    # Channel Access
    # =========================================================================

    async def get_staff_channel(self) -> Optional[discord.TextChannel]:
        """Return the staff channel, fetching it once."""
        if self._staff_channel is None:
            self._staff_channel = await safe_fetch_channel(self.bot, self.config.staff_channel_id)
            if self._staff_channel is None:
                logger.warning("Staff Channel Not Found", [
                    ("Channel ID", str(self.config.staff_channel_id)),
                ])
        return self._staff_channel

    async def _get_thread(self, thread_id: int) -> Optional[discord.Thread]:
        """Get a ticket thread by ID with caching."""
        now = time.monotonic()

        cached = self._thread_cache.get(thread_id)
        if cached is not None:
            thread, cached_at = cached
            if now - cached_at < THREAD_CACHE_TTL:
                return thread
            del self._thread_cache[thread_id]

        channel = await safe_fetch_channel(self.bot, thread_id)
        if isinstance(channel, discord.Thread):
            self._cache_thread(channel)
            return channel
        return None

    def _cache_thread(self, thread: discord.Thread) -> None:
        self._thread_cache[thread.id] = (thread, time.monotonic())
        if len(self._thread_cache) > THREAD_CACHE_MAX:
            oldest = min(self._thread_cache, key=lambda k: self._thread_cache[k][1])
            del self._thread_cache[oldest]

    async def _thread_exists(self, thread_id: int) -> bool:
        return await self._get_thread(thread_id) is not None

    async def _create_thread(self, user: discord.abc.User) -> int:
        """
        Open a ticket thread under the staff channel and post the info card.

        Returns:
            The new thread's id.

        Raises:
            RelayError: If the staff channel is unavailable.
            discord.HTTPException: If Discord refuses the thread.
        """
        staff_channel = await self.get_staff_channel()
        if staff_channel is None:
            raise RelayError(f"Staff channel {self.config.staff_channel_id} is unavailable")

        thread = await staff_channel.create_thread(
            name=_thread_name(user),
            auto_archive_duration=THREAD_AUTO_ARCHIVE_MINUTES,
            type=discord.ChannelType.public_thread,
            reason=f"ModMail from {user}",
        )
        self._cache_thread(thread)

        try:
            await thread.send(embed=build_ticket_info_embed(user), view=ModmailCloseView(user.id))
        except discord.HTTPException as e:
            logger.warning("Ticket Info Card Failed", [
                ("User", f"{user} ({user.id})"),
                ("Thread", str(thread.id)),
                ("Error", str(e)[:100]),
            ])

        logger.tree("Ticket Thread Created", [
            ("User", f"{user} ({user.id})"),
            ("Thread", f"{thread.name} ({thread.id})"),
        ], emoji=TICKET_EMOJI)
        return thread.id

    # =========================================================================
    # User -> Staff
    # =========================================================================

    async def handle_user_message(self, message: discord.Message) -> RelayOutcome:
        """
        Route one inbound DM to the user's ticket thread.

        Args:
            message: A message from a DM channel.

        Returns:
            RelayOutcome describing what happened.
        """
        author = message.author
        if author.bot:
            return RelayOutcome.IGNORED

        if self.dedup.seen(message.id):
            logger.debug("Duplicate DM Dropped", [("Message ID", str(message.id))])
            return RelayOutcome.DUPLICATE

        # ---------------------------------------------------------------------
        # Gating
        # ---------------------------------------------------------------------

        decision = self.rate_limiter.check_and_record(author.id)
        if not decision.allowed:
            await self._notify_user(message, build_rate_limit_embed(decision.cooldown_remaining))
            if decision.reason is RateReason.LIMIT_EXCEEDED:
                await self._alert_staff(build_spam_alert_embed(
                    author,
                    self.rate_limiter.message_limit,
                    self.rate_limiter.time_window,
                    self.rate_limiter.cooldown_seconds,
                ))
            return RelayOutcome.RATE_LIMITED

        matched = self.content_filter.find_match(message.content)
        if matched is not None:
            logger.tree("Filtered DM Blocked", [
                ("User", f"{author} ({author.id})"),
                ("Matched", matched),
            ], emoji=FILTER_EMOJI)
            await self._notify_user(message, build_filtered_embed())
            await self._alert_staff(build_filter_alert_embed(author, message.content, matched))
            return RelayOutcome.FILTERED

        # ---------------------------------------------------------------------
        # Relay
        # ---------------------------------------------------------------------

        outcome = RelayOutcome.RELAYED
        lock = self._user_locks.setdefault(author.id, asyncio.Lock())
        self._lock_users[author.id] = self._lock_users.get(author.id, 0) + 1
        try:
            async with lock:
                try:
                    await self._relay_to_thread(message)
                except Exception as e:
                    outcome = RelayOutcome.FAILED
                    ErrorHandler.handle(
                        e,
                        location="MessageRouter.handle_user_message",
                        user_id=author.id,
                        message_id=message.id,
                    )
                    await self._reply_text(message, GENERIC_RETRY_NOTICE)
        finally:
            self._release_lock_use(author.id)

        await self._react(message)
        return outcome

    def _release_lock_use(self, user_id: int) -> None:
        remaining = self._lock_users.get(user_id, 0) - 1
        if remaining > 0:
            self._lock_users[user_id] = remaining
        else:
            self._lock_users.pop(user_id, None)

    def _drop_vanished_ticket(self, user_id: int, thread_id: int) -> None:
        """Forget a ticket whose thread turned out to be deleted."""
        self._thread_cache.pop(thread_id, None)
        if self.registry.resolve_user_by_thread(thread_id) == user_id:
            self.registry.close(user_id)
        logger.warning("Ticket Thread Vanished", [
            ("User ID", str(user_id)),
            ("Thread", str(thread_id)),
        ])

    async def _relay_to_thread(self, message: discord.Message) -> None:
        """
        Place one DM into the user's ticket thread and record it.

        A thread deleted without a delete event (missed during a reconnect)
        still looks alive from cache, so a NotFound on send drops the ticket
        and the message is relayed once more into a fresh thread.
        """
        author = message.author

        for attempt in range(2):
            conversation, _ = await self.registry.open_or_reuse(
                author.id,
                factory=lambda: self._create_thread(author),
                thread_exists=self._thread_exists,
            )

            thread = await self._get_thread(conversation.thread_id)
            if thread is None:
                raise RelayError(f"Thread {conversation.thread_id} is unavailable")

            index = conversation.message_count + 1
            embed = build_relay_embed(author, message.content, message.attachments, index)
            try:
                await thread.send(embed=embed)
                break
            except discord.NotFound:
                self._drop_vanished_ticket(author.id, thread.id)
                if attempt:
                    raise

        conversation = self.registry.record_message(author.id)

        logger.tree("DM Relayed", [
            ("User", f"{author} ({author.id})"),
            ("Thread", str(thread.id)),
            ("Message #", str(conversation.message_count)),
            ("Attachments", str(len(message.attachments))),
            ("Content", _preview(message.content)),
        ], emoji=TICKET_EMOJI)

        if conversation.message_count == 1:
            try:
                await message.reply(embed=build_ticket_opened_embed(), mention_author=False)
            except discord.HTTPException as e:
                logger.warning("Ticket Opened Notice Failed", [
                    ("User", f"{author} ({author.id})"),
                    ("Error", str(e)[:100]),
                ])

    # =========================================================================
    # Staff -> User
    # =========================================================================

    def is_command_text(self, content: Optional[str]) -> bool:
        """Check whether thread text is a command rather than a reply."""
        if not content:
            return False
        return content.startswith(self.config.command_prefix) or content.startswith("/")

    async def handle_staff_message(self, message: discord.Message) -> bool:
        """
        Relay a staff message from a ticket thread to the ticket owner.

        Returns:
            True if a relay was attempted.
        """
        if message.author.bot:
            return False

        channel = message.channel
        if getattr(channel, "parent_id", None) != self.config.staff_channel_id:
            return False

        user_id = self.registry.resolve_user_by_thread(channel.id)
        if user_id is None:
            return False

        if self.is_command_text(message.content):
            return False

        content = (message.content or "").strip()
        if not content and not message.attachments:
            return False

        user = await safe_fetch_user(self.bot, user_id)
        if user is None:
            await self._reply_text(message, "❌ **Error:** Could not find the ticket owner.")
            return True

        try:
            files = [await attachment.to_file() for attachment in message.attachments]
            if content:
                text = f"{STAFF_REPLY_HEADER}\n{message.content}"
            else:
                text = f"{STAFF_REPLY_HEADER} *Sent you file(s)*"
            await user.send(content=text, files=files)
        except discord.HTTPException as e:
            logger.warning("Staff Reply Not Delivered", [
                ("Staff", f"{message.author} ({message.author.id})"),
                ("To User", str(user_id)),
                ("Error", str(e)[:100]),
            ])
            await self._reply_text(message, f"{DM_FAILED_NOTICE}\n`{str(e)[:100]}`")
            return True

        await self._react(message)
        self.rate_limiter.record_staff_reply(user_id)
        self.registry.touch(user_id)

        logger.tree("Staff Reply Relayed", [
            ("Staff", f"{message.author} ({message.author.id})"),
            ("To User", f"{user} ({user_id})"),
            ("Attachments", str(len(message.attachments))),
            ("Content", _preview(content)),
        ], emoji=STAFF_EMOJI)
        return True

    async def reply_to_user(
        self,
        user_id: int,
        text: str,
        staff: discord.abc.User,
        icon_url: Optional[str] = None,
    ) -> Tuple[bool, str]:
        """
        Send a "Staff Response" DM outside the ticket thread.

        Returns:
            (success, message for the invoking staff member).
        """
        user = await safe_fetch_user(self.bot, user_id)
        if user is None:
            return False, "❌ Unable to find that user."

        try:
            await user.send(embed=build_staff_response_embed(text, icon_url))
        except discord.HTTPException as e:
            logger.warning("Direct Reply Not Delivered", [
                ("Staff", f"{staff} ({staff.id})"),
                ("To User", str(user_id)),
                ("Error", str(e)[:100]),
            ])
            return False, "❌ Unable to send DM to user."

        self.rate_limiter.record_staff_reply(user_id)
        self.registry.touch(user_id)

        logger.tree("Direct Reply Sent", [
            ("Staff", f"{staff} ({staff.id})"),
            ("To User", f"{user} ({user_id})"),
            ("Content", _preview(text)),
        ], emoji=STAFF_EMOJI)
        return True, f"✅ Reply sent to {user}"

    # =========================================================================
    # Close
    # =========================================================================

    async def close_ticket(
        self,
        user_id: int,
        closed_by: Optional[discord.abc.User] = None,
    ) -> Tuple[bool, str]:
        """
        Close a ticket: notify the user, delete the thread, forget it.

        The registry entry is removed only once the thread is confirmed gone.

        Returns:
            (success, message for the invoking staff member).
        """
        conversation = self.registry.find_open(user_id)
        if conversation is None:
            return False, NO_ACTIVE_TICKET

        user = await safe_fetch_user(self.bot, user_id)
        if user is not None:
            try:
                await user.send(embed=build_ticket_closed_embed())
            except discord.HTTPException as e:
                logger.debug("Close Notice Not Delivered", [
                    ("User", str(user_id)),
                    ("Error", str(e)[:100]),
                ])

        thread_id = conversation.thread_id
        try:
            cached = self._thread_cache.get(thread_id)
            thread = cached[0] if cached else self.bot.get_channel(thread_id)
            if thread is None:
                thread = await self.bot.fetch_channel(thread_id)
            await thread.delete(reason=CLOSE_REASON)
        except discord.NotFound:
            logger.info(f"Ticket thread {thread_id} already deleted")
        except discord.HTTPException as e:
            ErrorHandler.handle(
                e,
                location="MessageRouter.close_ticket",
                user_id=user_id,
                thread_id=thread_id,
            )
            return False, "❌ Error closing ticket."

        self._thread_cache.pop(thread_id, None)
        self.registry.close(user_id)

        label = str(user) if user is not None else str(user_id)
        logger.tree("Ticket Closed", [
            ("User", f"{label} ({user_id})"),
            ("Thread", str(thread_id)),
            ("Messages", str(conversation.message_count)),
            ("Closed By", f"{closed_by} ({closed_by.id})" if closed_by else "Unknown"),
        ], emoji=CLOSE_EMOJI)
        return True, f"✅ Ticket closed for {label}"

    def handle_thread_deleted(self, thread_id: int) -> bool:
        """
        Forget a ticket whose thread was deleted outside the bot.

        Returns:
            True if a tracked ticket was dropped.
        """
        self._thread_cache.pop(thread_id, None)
        user_id = self.registry.resolve_user_by_thread(thread_id)
        if user_id is None:
            return False

        self.registry.close(user_id)
        logger.tree("Ticket Thread Deleted", [
            ("User ID", str(user_id)),
            ("Thread", str(thread_id)),
        ], emoji=CLOSE_EMOJI)
        return True

    # =========================================================================
    # Announcements & Listing
    # =========================================================================

    async def announce(
        self,
        channel: discord.abc.Messageable,
        text: Optional[str],
        *,
        as_embed: bool = False,
        attachments: Sequence[discord.Attachment] = (),
        guild: Optional[discord.Guild] = None,
        author: Optional[discord.abc.User] = None,
    ) -> Tuple[bool, str]:
        """
        Send a plain or embedded announcement to a channel.

        The first image attachment is previewed inside the embed.

        Returns:
            (success, message for the invoking staff member).
        """
        target = getattr(channel, "mention", str(channel))
        try:
            files = [await attachment.to_file() for attachment in attachments]
            if as_embed:
                first_image = next(
                    (a for a in attachments if (a.content_type or "").startswith("image/")),
                    None,
                )
                image_url = f"attachment://{first_image.filename}" if first_image else None
                embed = build_announcement_embed(text, guild, image_url)
                await channel.send(embed=embed, files=files)
            else:
                await channel.send(content=text or None, files=files)
        except discord.HTTPException as e:
            logger.warning("Announcement Failed", [
                ("Channel", str(target)),
                ("Error", str(e)[:100]),
            ])
            return False, "❌ Error sending message. Check permissions."

        kind = "Embed" if as_embed else "Normal"
        logger.tree("Announcement Sent", [
            ("Channel", str(target)),
            ("Kind", kind),
            ("By", f"{author} ({author.id})" if author else "Unknown"),
            ("Attachments", str(len(attachments))),
        ], emoji="📢")
        return True, f"{STAFF_EMOJI} {kind} message sent to {target}"

    async def list_conversations(self) -> Optional[discord.Embed]:
        """
        Build the open-ticket listing.

        Returns:
            The embed, or None if no tickets are open.
        """
        conversations = self.registry.list_all()
        if not conversations:
            return None

        labels: List[str] = []
        for conversation in conversations[:EMBED_FIELD_LIMIT]:
            user = await safe_fetch_user(self.bot, conversation.user_id)
            labels.append(str(user) if user is not None else f"Unknown ({conversation.user_id})")
        return build_conversations_embed(conversations, labels)

    # =========================================================================
    # Outbound Helpers
    # =========================================================================

    async def _notify_user(self, message: discord.Message, embed: discord.Embed) -> None:
        try:
            await message.reply(embed=embed, mention_author=False)
        except discord.HTTPException as e:
            logger.debug("User Notice Not Delivered", [
                ("User", str(message.author.id)),
                ("Error", str(e)[:100]),
            ])

    async def _reply_text(self, message: discord.Message, text: str) -> None:
        try:
            await message.reply(text, mention_author=False)
        except discord.HTTPException as e:
            logger.warning("Inline Notice Failed", [
                ("Channel", str(message.channel.id)),
                ("Error", str(e)[:100]),
            ])

    async def _react(self, message: discord.Message) -> None:
        try:
            await message.add_reaction(DELIVERED_REACTION)
        except discord.HTTPException as e:
            logger.debug("Delivery Reaction Failed", [
                ("Message ID", str(message.id)),
                ("Error", str(e)[:100]),
            ])

    async def _alert_staff(self, embed: discord.Embed) -> None:
        channel = await self.get_staff_channel()
        if channel is None:
            return
        await safe_send(channel, embed=embed)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "MessageRouter",
    "RelayError",
]
