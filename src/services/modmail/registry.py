"""
ModMail Bot - Conversation Registry
===================================

In-memory mapping between users and their open ticket threads.

DESIGN:
    The registry is the only owner of Conversation objects. It keeps a
    forward map (user -> conversation) and a reverse index
    (thread -> user) in step, so both lookups are O(1).

    Invariants:
    - At most one conversation per user
    - message_count only grows while the conversation is open
    - A conversation exists iff its thread exists; the registry cannot see
      Discord, so callers pass a thread_exists check and only call close()
      after the thread is confirmed deleted

    State is process-local. A restart forgets every open ticket.
"""

from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from src.core.config import NY_TZ
from src.core.logger import logger

from .models import Conversation


ThreadFactory = Callable[[], Awaitable[int]]
ThreadExistsCheck = Callable[[int], Awaitable[bool]]


class ConversationRegistry:
    """
    Owner of all open conversations.

    Attributes:
        clock: Callable returning the current aware datetime.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.clock = clock or (lambda: datetime.now(NY_TZ))
        self._by_user: Dict[int, Conversation] = {}
        self._by_thread: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._by_user)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._by_user

    # =========================================================================
    # Lookups
    # =========================================================================

    def find_open(self, user_id: int) -> Optional[Conversation]:
        """Return the user's open conversation, if any."""
        return self._by_user.get(user_id)

    def resolve_user_by_thread(self, thread_id: int) -> Optional[int]:
        """Return the user owning a ticket thread, if it is tracked."""
        return self._by_thread.get(thread_id)

    def list_all(self) -> List[Conversation]:
        """All open conversations in the order they were opened."""
        return list(self._by_user.values())

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open_or_reuse(
        self,
        user_id: int,
        factory: ThreadFactory,
        thread_exists: ThreadExistsCheck,
    ) -> Tuple[Conversation, bool]:
        """
        Return the user's conversation, creating one if needed.

        The existing conversation is reused only while its thread still
        exists. A thread deleted out of band (or an existence check that
        fails) falls through to creating a new thread.

        Args:
            user_id: Owner of the conversation.
            factory: Creates a new thread and returns its id.
            thread_exists: Reports whether a thread id is still alive.

        Returns:
            (conversation, created) tuple.

        Raises:
            Whatever the factory raises. The registry is left untouched.
        """
        existing = self._by_user.get(user_id)
        if existing is not None:
            try:
                alive = await thread_exists(existing.thread_id)
            except Exception as e:
                logger.warning("Thread Existence Check Failed", [
                    ("User ID", str(user_id)),
                    ("Thread", str(existing.thread_id)),
                    ("Error", str(e)[:100]),
                ])
                alive = False

            if alive:
                return existing, False

            logger.tree("Stale Ticket Dropped", [
                ("User ID", str(user_id)),
                ("Thread", str(existing.thread_id)),
                ("Messages", str(existing.message_count)),
            ], emoji="🧹")
            self._remove(user_id)

        thread_id = await factory()

        conversation = Conversation(
            user_id=user_id,
            thread_id=thread_id,
            created_at=self.clock(),
        )
        self._by_user[user_id] = conversation
        self._by_thread[thread_id] = user_id
        return conversation, True

    def record_message(self, user_id: int) -> Conversation:
        """
        Count one relayed user message.

        Raises:
            KeyError: If the user has no open conversation.
        """
        conversation = self._by_user[user_id]
        now = self.clock()
        conversation.message_count += 1
        conversation.last_message_at = now
        conversation.last_user_message_at = now
        return conversation

    def touch(self, user_id: int) -> Optional[Conversation]:
        """Stamp staff activity without counting a message."""
        conversation = self._by_user.get(user_id)
        if conversation is not None:
            conversation.last_message_at = self.clock()
        return conversation

    def close(self, user_id: int) -> bool:
        """
        Remove a conversation.

        Call only after the thread deletion has been confirmed.

        Returns:
            True if a conversation existed.
        """
        return self._remove(user_id) is not None

    def _remove(self, user_id: int) -> Optional[Conversation]:
        conversation = self._by_user.pop(user_id, None)
        if conversation is not None:
            self._by_thread.pop(conversation.thread_id, None)
        return conversation


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["ConversationRegistry"]
