"""
ModMail Bot - DM Rate Limiter Tests
===================================

Tests for the sliding-window spam detector.
"""

from src.services.modmail.models import RateReason
from src.services.modmail.rate_limiter import DMRateLimiter


USER = 42


def send_burst(limiter, count, start=1000.0, step=1.0):
    """Send `count` messages `step` seconds apart, returning the decisions."""
    return [limiter.check_and_record(USER, now=start + i * step) for i in range(count)]


# =============================================================================
# Window & Trip Tests
# =============================================================================

class TestWindow:
    """Tests for the sliding window."""

    def test_first_message_always_allowed(self):
        """Empty history always allows."""
        limiter = DMRateLimiter()
        decision = limiter.check_and_record(USER, now=0.0)

        assert decision.allowed is True
        assert decision.reason is RateReason.NONE
        assert decision.cooldown_remaining is None

    def test_five_messages_in_window_allowed(self):
        """Messages below the limit all pass."""
        limiter = DMRateLimiter()
        decisions = send_burst(limiter, 5)

        assert all(d.allowed for d in decisions)

    def test_sixth_message_trips_limit(self):
        """The 6th message in the window is itself rejected."""
        limiter = DMRateLimiter()
        decisions = send_burst(limiter, 6)

        sixth = decisions[-1]
        assert sixth.allowed is False
        assert sixth.reason is RateReason.LIMIT_EXCEEDED
        assert sixth.cooldown_remaining == 300
        assert limiter.is_on_cooldown(USER, now=1006.0)

    def test_old_timestamps_pruned(self):
        """Messages older than the window do not count."""
        limiter = DMRateLimiter()
        send_burst(limiter, 5, start=0.0)

        decision = limiter.check_and_record(USER, now=200.0)

        assert decision.allowed is True

    def test_boundary_timestamp_leaves_window(self):
        """A timestamp exactly one window old is pruned."""
        limiter = DMRateLimiter(message_limit=2, time_window=60)
        limiter.check_and_record(USER, now=0.0)

        decision = limiter.check_and_record(USER, now=60.0)

        assert decision.allowed is True

    def test_users_are_independent(self):
        """One user's burst does not affect another."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6)

        decision = limiter.check_and_record(USER + 1, now=1006.0)

        assert decision.allowed is True


# =============================================================================
# Cooldown Tests
# =============================================================================

class TestCooldown:
    """Tests for the cooldown state."""

    def test_cooldown_rejects_with_decreasing_remaining(self):
        """Messages during the cooldown report shrinking remaining seconds."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)  # tripped at t=5

        first = limiter.check_and_record(USER, now=10.0)
        later = limiter.check_and_record(USER, now=100.0)

        assert first.reason is RateReason.COOLDOWN
        assert later.reason is RateReason.COOLDOWN
        assert first.cooldown_remaining == 295
        assert later.cooldown_remaining == 205
        assert later.cooldown_remaining < first.cooldown_remaining

    def test_remaining_rounds_up(self):
        """Fractional remaining seconds are rounded up."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)

        decision = limiter.check_and_record(USER, now=10.5)

        assert decision.cooldown_remaining == 295

    def test_cooldown_messages_not_recorded(self):
        """Rejected messages do not re-trip the limit after the cooldown."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)
        for t in range(10, 300, 10):
            limiter.check_and_record(USER, now=float(t))

        decision = limiter.check_and_record(USER, now=306.0)

        assert decision.allowed is True

    def test_cooldown_expires(self):
        """After the cooldown a fresh window starts."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)

        decisions = send_burst(limiter, 5, start=305.0)

        assert all(d.allowed for d in decisions)
        assert not limiter.is_on_cooldown(USER, now=310.0)


# =============================================================================
# Staff Reset Tests
# =============================================================================

class TestStaffReset:
    """Tests for the early staff-reply reset."""

    def test_recent_staff_reply_clears_history(self):
        """A staff reply within the reset window clears prior timestamps."""
        limiter = DMRateLimiter()
        send_burst(limiter, 5, start=0.0)
        limiter.record_staff_reply(USER, now=5.0)

        decision = limiter.check_and_record(USER, now=7.0)
        follow_up = send_burst(limiter, 4, start=8.0)

        assert decision.allowed is True
        assert all(d.allowed for d in follow_up)

    def test_stale_staff_reply_does_not_clear(self):
        """A staff reply older than the reset window has no effect."""
        limiter = DMRateLimiter()
        send_burst(limiter, 5, start=0.0)
        limiter.record_staff_reply(USER, now=1.0)

        decision = limiter.check_and_record(USER, now=10.0)

        assert decision.reason is RateReason.LIMIT_EXCEEDED

    def test_staff_reply_reset_consumed_once(self):
        """One staff reply clears the history only once."""
        limiter = DMRateLimiter()
        limiter.record_staff_reply(USER, now=0.0)
        decisions = send_burst(limiter, 6, start=1.0, step=0.5)

        assert [d.allowed for d in decisions] == [True] * 5 + [False]

    def test_staff_reply_does_not_lift_cooldown(self):
        """An active cooldown survives a staff reply."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)
        limiter.record_staff_reply(USER, now=20.0)

        decision = limiter.check_and_record(USER, now=22.0)

        assert decision.allowed is False
        assert decision.reason is RateReason.COOLDOWN


# =============================================================================
# Memory Management Tests
# =============================================================================

class TestPruneIdle:
    """Tests for idle eviction."""

    def test_prune_evicts_idle_users(self):
        """Users with nothing in the window are evicted."""
        limiter = DMRateLimiter()
        limiter.check_and_record(USER, now=0.0)

        evicted = limiter.prune_idle(now=120.0)

        assert evicted == 1
        assert limiter.tracked_users == 0

    def test_prune_keeps_active_window(self):
        """Users with in-window timestamps are kept."""
        limiter = DMRateLimiter()
        limiter.check_and_record(USER, now=100.0)

        assert limiter.prune_idle(now=120.0) == 0
        assert limiter.tracked_users == 1

    def test_prune_keeps_active_cooldown(self):
        """Users under a cooldown are kept."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)

        assert limiter.prune_idle(now=200.0) == 0
        assert limiter.is_on_cooldown(USER, now=200.0)

    def test_reset_forgets_user(self):
        """reset() drops all state for a user."""
        limiter = DMRateLimiter()
        send_burst(limiter, 6, start=0.0)

        limiter.reset(USER)

        assert limiter.tracked_users == 0
        assert limiter.check_and_record(USER, now=10.0).allowed is True
