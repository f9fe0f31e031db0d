"""
Learning-record cache
=====================

Per-tenant, in-process store of the records from the latest harvest. Entries
expire after ``learning_cache_ttl_seconds``; the reply service reads them
to quote similar past tickets.
"""

import re
import time
from typing import Callable, Dict, List, Optional, Tuple

from replydesk.config import settings
from replydesk.learning.domain import LearningRecord

_WORD = re.compile(r"\w+")
MIN_KEYWORD_LENGTH = 5


def keywords(text: str) -> set:
    """Lower-cased words longer than four characters."""
    return {w for w in _WORD.findall(text.lower()) if len(w) >= MIN_KEYWORD_LENGTH}


class LearningCache:
    """TTL cache of learning records keyed by tenant id."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._ttl = ttl_seconds or settings.learning_cache_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[LearningRecord]]] = {}

    def put(self, tenant_id: str, records: List[LearningRecord]) -> None:
        self._entries[str(tenant_id)] = (self._clock() + self._ttl, list(records))

    def get(self, tenant_id: str) -> List[LearningRecord]:
        entry = self._entries.get(str(tenant_id))
        if entry is None:
            return []
        expires_at, records = entry
        if self._clock() >= expires_at:
            del self._entries[str(tenant_id)]
            return []
        return records

    def clear(self, tenant_id: Optional[str] = None) -> None:
        if tenant_id is None:
            self._entries.clear()
        else:
            self._entries.pop(str(tenant_id), None)

    def find_similar(self, tenant_id: str, message: str, limit: int = 3) -> List[LearningRecord]:
        """
        Records ranked by how many of the message's keywords their subject or
        customer message contains. Records matching nothing are dropped.
        """
        if limit <= 0:
            return []

        wanted = keywords(message)
        if not wanted:
            return []

        scored = []
        for record in self.get(tenant_id):
            text = f"{record.subject} {record.customer_message}".lower()
            score = sum(1 for word in wanted if word in text)
            if score:
                scored.append((score, record))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [record for _, record in scored[:limit]]
