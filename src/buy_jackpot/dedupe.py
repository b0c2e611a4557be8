from __future__ import annotations

from collections import OrderedDict

from .project_constants import DEDUP_CAPACITY


class DedupCache:
    """Fixed-capacity LRU of processed event ids.

    Lives in memory only: a restart forgets every id it has seen.
    """

    def __init__(self, capacity: int = DEDUP_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._seen

    def check_and_add(self, event_id: str) -> bool:
        """Record ``event_id``. Returns True if it was already seen."""
        if event_id in self._seen:
            self._seen.move_to_end(event_id)
            return True
        self._seen[event_id] = None
        if len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return False
