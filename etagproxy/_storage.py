from __future__ import annotations

import logging
import typing as tp

from etagproxy._models import Entry

logger = logging.getLogger("etagproxy.storage")

__all__ = ("InMemoryStorage", "is_expired")


def is_expired(entry: Entry, now: float, ttl: tp.Union[int, float]) -> bool:
    """
    An entry is expired once its age reaches the TTL.

    :param entry: A stored entry
    :type entry: Entry
    :param now: Current wall-clock time in seconds
    :type now: float
    :param ttl: Lifetime of an entry in seconds
    :type ttl: tp.Union[int, float]
    """
    return now - entry.captured_at >= ttl


class InMemoryStorage:
    """
    A keyed in-memory table of cache entries.

    Every operation is synchronous, so within a single event loop each one is
    atomic with respect to other tasks. The storage never evicts on its own;
    expiry is interpreted by its callers.
    """

    def __init__(self) -> None:
        self._entries: tp.Dict[str, Entry] = {}

    def get(self, key: str) -> tp.Optional[Entry]:
        return self._entries.get(key)

    def put(self, key: str, entry: Entry) -> None:
        logger.debug("Storing entry for %s", key)
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Deleted entry for %s", key)

    def keys(self) -> tp.List[str]:
        return list(self._entries)

    def is_expired(self, entry: Entry, now: float, ttl: tp.Union[int, float]) -> bool:
        return is_expired(entry, now, ttl)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
