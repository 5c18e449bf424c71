"""
ModMail Bot - DM Rate Limiter
=============================

Per-user sliding-window spam detection with a cooldown.

DESIGN:
    Each user owns a RateState: recent message timestamps, an optional
    cooldown expiry and the time of the last staff reply. All times are
    time.monotonic() seconds from this process.

    Evaluation order:
    1. Active cooldown -> COOLDOWN, nothing recorded
    2. Expired cooldown -> cleared
    3. Staff reply within STAFF_RESET_WINDOW -> history cleared (once)
    4. Prune timestamps outside the window
    5. This message reaching the limit -> new cooldown, LIMIT_EXCEEDED
    6. Otherwise record and allow
"""

import math
import time
from typing import Dict, Optional

from src.core.logger import logger

from .constants import (
    SPAM_COOLDOWN_SECONDS,
    SPAM_MESSAGE_LIMIT,
    SPAM_TIME_WINDOW,
    STAFF_RESET_WINDOW,
)
from .models import RateDecision, RateReason, RateState


class DMRateLimiter:
    """
    Sliding-window spam detector for inbound DMs.

    Attributes:
        message_limit: Messages in the window that trip the cooldown.
        time_window: Window length in seconds.
        cooldown_seconds: Cooldown length in seconds.
        staff_reset_window: Staff-reply grace period in seconds.
    """

    def __init__(
        self,
        message_limit: int = SPAM_MESSAGE_LIMIT,
        time_window: float = SPAM_TIME_WINDOW,
        cooldown_seconds: float = SPAM_COOLDOWN_SECONDS,
        staff_reset_window: float = STAFF_RESET_WINDOW,
    ) -> None:
        self.message_limit = message_limit
        self.time_window = time_window
        self.cooldown_seconds = cooldown_seconds
        self.staff_reset_window = staff_reset_window
        self._states: Dict[int, RateState] = {}

    # =========================================================================
    # Evaluation
    # =========================================================================

    def check_and_record(self, user_id: int, now: Optional[float] = None) -> RateDecision:
        """
        Evaluate one inbound message and record it if allowed.

        Args:
            user_id: Author of the message.
            now: Monotonic timestamp; defaults to time.monotonic().

        Returns:
            RateDecision describing the outcome.
        """
        now = time.monotonic() if now is None else now
        state = self._states.setdefault(user_id, RateState())

        if state.cooldown_until is not None:
            if now < state.cooldown_until:
                return RateDecision(
                    allowed=False,
                    reason=RateReason.COOLDOWN,
                    cooldown_remaining=math.ceil(state.cooldown_until - now),
                )
            state.cooldown_until = None

        if (
            state.last_staff_reply is not None
            and 0 <= now - state.last_staff_reply <= self.staff_reset_window
        ):
            state.timestamps.clear()
            state.last_staff_reply = None

        cutoff = now - self.time_window
        state.timestamps = [t for t in state.timestamps if t > cutoff]

        # The message that would become the Nth in the window is rejected
        if len(state.timestamps) + 1 >= self.message_limit:
            state.cooldown_until = now + self.cooldown_seconds
            state.timestamps.clear()
            logger.tree("DM Spam Limit Tripped", [
                ("User ID", str(user_id)),
                ("Limit", f"{self.message_limit} msgs / {self.time_window}s"),
                ("Cooldown", f"{self.cooldown_seconds}s"),
            ], emoji="🚫")
            return RateDecision(
                allowed=False,
                reason=RateReason.LIMIT_EXCEEDED,
                cooldown_remaining=math.ceil(self.cooldown_seconds),
            )

        state.timestamps.append(now)
        return RateDecision(allowed=True)

    def record_staff_reply(self, user_id: int, now: Optional[float] = None) -> None:
        """Remember that staff just replied to this user."""
        now = time.monotonic() if now is None else now
        self._states.setdefault(user_id, RateState()).last_staff_reply = now

    # =========================================================================
    # Inspection
    # =========================================================================

    def is_on_cooldown(self, user_id: int, now: Optional[float] = None) -> bool:
        """Check whether a user is currently under a cooldown."""
        now = time.monotonic() if now is None else now
        state = self._states.get(user_id)
        return bool(state and state.cooldown_until is not None and now < state.cooldown_until)

    @property
    def tracked_users(self) -> int:
        """Number of users with rate state in memory."""
        return len(self._states)

    # =========================================================================
    # Memory Management
    # =========================================================================

    def reset(self, user_id: int) -> None:
        """Forget everything about a user."""
        self._states.pop(user_id, None)

    def prune_idle(self, now: Optional[float] = None) -> int:
        """
        Evict users with nothing left to enforce.

        A user is idle once the cooldown has expired, no timestamp is inside
        the window and no staff reset is pending.

        Returns:
            Number of users evicted.
        """
        now = time.monotonic() if now is None else now
        cutoff = now - self.time_window

        idle = [
            user_id for user_id, state in self._states.items()
            if (state.cooldown_until is None or now >= state.cooldown_until)
            and all(t <= cutoff for t in state.timestamps)
            and (
                state.last_staff_reply is None
                or now - state.last_staff_reply > self.staff_reset_window
            )
        ]
        for user_id in idle:
            del self._states[user_id]
        return len(idle)


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["DMRateLimiter"]
