"""
Incident Registry

In-memory map from call id to incident details. Entries live for the
life of the process unless a TTL or size bound is configured.
"""

import threading
import time
from collections import OrderedDict

import structlog

from callbot_core.telephony.base import IncidentDetails


logger = structlog.get_logger()


class IncidentRegistry:
    """
    Lock-guarded incident store keyed by call id.

    A lookup miss is a normal "no incident" answer, not an error.
    """

    def __init__(self, ttl_seconds: int | None = None, max_entries: int | None = None) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        # call_id -> (stored_at, details), oldest first
        self._entries: "OrderedDict[str, tuple[float, IncidentDetails]]" = OrderedDict()
        self._lock = threading.Lock()

    def set(self, call_id: str, details: IncidentDetails) -> None:
        """Insert or overwrite the incident for a call."""
        with self._lock:
            self._entries.pop(call_id, None)
            self._entries[call_id] = (time.monotonic(), details)
            self._evict_locked()

        logger.debug("incident_stored", call_id=call_id, subject=details.subject)

    def get(self, call_id: str) -> IncidentDetails | None:
        with self._lock:
            entry = self._entries.get(call_id)
            if entry is None:
                return None
            if self._expired(entry[0]):
                del self._entries[call_id]
                return None
            return entry[1]

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds is not None and time.monotonic() - stored_at > self.ttl_seconds

    def _evict_locked(self) -> None:
        evicted = 0
        if self.ttl_seconds is not None:
            while self._entries:
                oldest_id, (stored_at, _) = next(iter(self._entries.items()))
                if not self._expired(stored_at):
                    break
                del self._entries[oldest_id]
                evicted += 1

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                evicted += 1

        if evicted:
            logger.info("incidents_evicted", count=evicted, remaining=len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, call_id: object) -> bool:
        return isinstance(call_id, str) and self.get(call_id) is not None
