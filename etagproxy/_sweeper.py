from __future__ import annotations

import logging
import time
import typing as tp

import anyio

from etagproxy._storage import InMemoryStorage

logger = logging.getLogger("etagproxy.sweeper")

__all__ = ("ExpirySweeper", "DEFAULT_SWEEP_INTERVAL")

DEFAULT_SWEEP_INTERVAL = 60.0


class ExpirySweeper:
    """
    Periodically removes expired entries from the storage.

    Reads already treat expired entries as misses, so sweeping only reclaims
    memory for keys nobody asks for anymore.

    :param storage: The storage to sweep
    :type storage: InMemoryStorage
    :param ttl: Lifetime of an entry in seconds
    :type ttl: tp.Union[int, float]
    :param interval: Seconds between two sweeps, defaults to 60
    :type interval: tp.Union[int, float], optional
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        ttl: tp.Union[int, float],
        interval: tp.Union[int, float] = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")

        self.storage = storage
        self.ttl = ttl
        self.interval = interval

    def sweep(self, now: tp.Optional[float] = None) -> tp.List[str]:
        now = time.time() if now is None else now
        logger.debug("Deleting expired entries from memory")

        removed = []
        for key in self.storage.keys():
            entry = self.storage.get(key)
            if entry is None:
                continue
            if self.storage.is_expired(entry, now, self.ttl):
                logger.info("%s has expired", key)
                self.storage.delete(key)
                removed.append(key)
        return removed

    async def run(self) -> None:
        """
        Sweep every `interval` seconds until cancelled.
        """
        logger.info("Starting expiry sweeper: interval=%ss ttl=%ss", self.interval, self.ttl)
        try:
            while True:
                await anyio.sleep(self.interval)
                self.sweep()
        finally:
            logger.info("Expiry sweeper stopped")
