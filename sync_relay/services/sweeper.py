"""
Eviction sweeper – periodically removes stale or disconnected sessions
"""

import asyncio
from typing import Optional

from sync_relay.logging_config import get_logger
from sync_relay.services.registry import Session
from sync_relay.services.sync_manager import SyncManager

logger = get_logger(__name__)

CLEANUP_INTERVAL_SECONDS = 5 * 60
STALE_SESSION_SECONDS = 10 * 60


class EvictionSweeper:
    """Evict sessions through the same path a disconnect takes."""

    def __init__(
        self,
        manager: SyncManager,
        interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        stale_after_seconds: float = STALE_SESSION_SECONDS,
    ):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.stale_after_ms = int(stale_after_seconds * 1000)

    def eviction_reason(self, session: Session) -> Optional[str]:
        if self.manager.clock() - session.last_activity_at > self.stale_after_ms:
            return "stale"
        if not self.manager.is_online(session):
            return "connection lost"
        return None

    async def sweep(self) -> int:
        """Run one pass. Returns the number of sessions evicted."""
        evicted = 0
        for session in self.manager.sessions.for_each():
            # re-checked per session: earlier evictions yield to the loop
            reason = self.eviction_reason(session)
            if reason is None:
                continue
            if await self.manager.evict(session, f"evicted: {reason}"):
                evicted += 1
        if evicted:
            logger.info(
                f"Cleaned up {evicted} players, {len(self.manager.rooms)} rooms remain"
            )
        return evicted

    async def run(self):
        """Sweep forever until cancelled."""
        logger.info(
            f"Eviction sweeper started (every {self.interval_seconds}s, "
            f"stale after {self.stale_after_ms // 1000}s)"
        )
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep()
            except Exception as exc:
                logger.error(f"Eviction sweep failed: {exc}", exc_info=True)
