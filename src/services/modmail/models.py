"""
Modmail Data Models
===================

Dataclasses and enums for conversations, rate-limit state and relay
outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass
class Conversation:
    """One open ticket: a user mapped to the thread hosting it."""
    user_id: int
    thread_id: int
    created_at: datetime
    message_count: int = 0
    last_message_at: Optional[datetime] = None       # Activity in either direction
    last_user_message_at: Optional[datetime] = None  # Relayed user messages only


class RateReason(Enum):
    """Why a message was or was not allowed through."""
    NONE = "none"
    COOLDOWN = "cooldown"
    LIMIT_EXCEEDED = "limit_exceeded"


@dataclass(frozen=True)
class RateDecision:
    """Result of a single rate-limit evaluation."""
    allowed: bool
    reason: RateReason = RateReason.NONE
    cooldown_remaining: Optional[int] = None


@dataclass
class RateState:
    """Per-user spam state (monotonic seconds)."""
    timestamps: List[float] = field(default_factory=list)
    cooldown_until: Optional[float] = None
    last_staff_reply: Optional[float] = None


class RelayOutcome(Enum):
    """What happened to an inbound DM."""
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate_limited"
    FILTERED = "filtered"
    RELAYED = "relayed"
    FAILED = "failed"
