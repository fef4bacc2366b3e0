"""
Pod Monitor

Background loop that polls the managed pod list and pushes a full snapshot
to every hub observer:

    {"type": "PodListUpdate", "pods": [PodInfo, ...]}

Polling is intentional; there is no watch stream to resume after a
disconnect, and a missed tick is corrected by the next one.
"""

import asyncio
import logging
from typing import Optional

from ..config import get_settings

logger = logging.getLogger(__name__)


class PodMonitor:
    """Periodically broadcasts the pod list through a SubscriptionHub."""

    def __init__(self, pod_manager, hub, settings=None):
        self.pod_manager = pod_manager
        self.hub = hub
        self.settings = settings or get_settings()
        self._task: Optional[asyncio.Task] = None

    async def poll_once(self) -> int:
        """List pods and broadcast one snapshot. Returns the pod count."""
        pods = await self.pod_manager.list_pods()
        await self.hub.broadcast({
            "type": "PodListUpdate",
            "pods": [pod.model_dump(mode="json", by_alias=True) for pod in pods],
        })
        return len(pods)

    async def run(self) -> None:
        """Poll until cancelled. Errors are logged and followed by a longer pause."""
        logger.info("[MONITOR] Pod monitor started")

        while True:
            try:
                count = await self.poll_once()
                logger.debug(f"[MONITOR] Broadcast {count} pods")
                await asyncio.sleep(self.settings.monitor_interval_seconds)

            except asyncio.CancelledError:
                logger.info("[MONITOR] Pod monitor stopped")
                raise
            except Exception as e:
                logger.error(f"[MONITOR] Error while polling pods: {e}", exc_info=True)
                await asyncio.sleep(self.settings.monitor_error_backoff_seconds)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
