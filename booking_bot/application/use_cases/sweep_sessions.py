from __future__ import annotations

import logging
import time

from booking_bot.application.ports.session_store import SessionStorePort


class SweepSessionsUseCase:
    """
    Drop sessions idle for longer than the TTL. Bounds memory, not a correctness mechanism.

    Addresses left with only processed message ids (after a cancel or a
    decline) are forgotten once their last message is older than the TTL.
    """

    def __init__(self, store: SessionStorePort, ttl_seconds: float) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._logger = logging.getLogger(__name__)

    def execute(self, now_ts: float | None = None) -> int:
        now_ts = time.time() if now_ts is None else now_ts
        cutoff = now_ts - self._ttl_seconds
        removed = 0
        for address, state in self._store.items():
            if state.last_updated is None or state.last_updated < cutoff:
                self._store.purge(address)
                removed += 1

        forgotten = self._store.stateless_addresses(seen_before=cutoff)
        for address in forgotten:
            self._store.purge(address)

        if removed or forgotten:
            self._logger.info("Idle sessions swept", extra={"removed": removed, "reason": f"{len(forgotten)} stateless"})
        return removed
