"""
ModMail Bot - Event Dedup Guard
===============================

Bounded memory of processed message ids so gateway redelivery of the
same event is relayed once.
"""

from collections import OrderedDict
from typing import Hashable

from .constants import DEDUP_CAPACITY


class DedupCache:
    """FIFO set of recently seen event ids."""

    def __init__(self, capacity: int = DEDUP_CAPACITY) -> None:
        self.capacity = capacity
        self._seen: "OrderedDict[Hashable, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._seen

    def seen(self, event_id: Hashable) -> bool:
        """
        Check an event id and remember it.

        Returns:
            True if the id was already processed, False for a new id.
        """
        if event_id in self._seen:
            return True

        self._seen[event_id] = None
        while len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return False


__all__ = ["DedupCache"]
