"""
Live Subscription Hub

Tracks websocket observers of pod state:

- connections: connection_id -> websocket
- groups: pod name -> connection ids subscribed to that pod
- log streams: one StreamHandle per (connection_id, pod name)

One hub is created at application startup and shared by the websocket
endpoint and the pod monitor. On disconnect every log stream owned by the
connection is cancelled and removed, so no background task outlives its
observer.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from ..config import get_settings
from ..schemas import LogEntry

logger = logging.getLogger(__name__)

StreamKey = Tuple[str, str]


@dataclass
class StreamHandle:
    """An active log stream for one (connection, pod) pair."""
    connection_id: str
    pod_name: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None

    @property
    def key(self) -> StreamKey:
        return (self.connection_id, self.pod_name)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()
        if self.task is not None and not self.task.done():
            self.task.cancel()


class LogStreamRegistry:
    """
    Stream handles keyed by (connection_id, pod name).

    All mutations hold one lock, so check-then-insert and remove-if-present
    are atomic even when a disconnect sweep runs alongside start/stop requests.
    """

    def __init__(self):
        self._handles: Dict[StreamKey, StreamHandle] = {}
        self._lock = asyncio.Lock()

    async def add_if_absent(self, handle: StreamHandle) -> bool:
        """Register a handle. Returns False if one already exists for its key."""
        async with self._lock:
            if handle.key in self._handles:
                return False
            self._handles[handle.key] = handle
            return True

    async def pop(self, connection_id: str, pod_name: str) -> Optional[StreamHandle]:
        async with self._lock:
            return self._handles.pop((connection_id, pod_name), None)

    async def discard(self, handle: StreamHandle) -> None:
        """Remove `handle` only if it is still the registered one for its key."""
        async with self._lock:
            if self._handles.get(handle.key) is handle:
                del self._handles[handle.key]

    async def pop_connection(self, connection_id: str) -> List[StreamHandle]:
        """Remove and return every handle owned by a connection."""
        async with self._lock:
            keys = [key for key in self._handles if key[0] == connection_id]
            return [self._handles.pop(key) for key in keys]

    def get(self, connection_id: str, pod_name: str) -> Optional[StreamHandle]:
        return self._handles.get((connection_id, pod_name))

    def keys(self) -> List[StreamKey]:
        return list(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, key: StreamKey) -> bool:
        return key in self._handles


class SubscriptionHub:
    """Connection, group and log stream bookkeeping for the pod websocket."""

    def __init__(self, pod_manager, settings=None):
        self.pod_manager = pod_manager
        self.settings = settings or get_settings()
        self.active_connections: Dict[str, Any] = {}
        self.groups: Dict[str, Set[str]] = {}
        self.streams = LogStreamRegistry()

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    async def connect(self, websocket, connection_id: Optional[str] = None) -> str:
        """Accept a websocket and register it as an observer."""
        await websocket.accept()
        connection_id = connection_id or str(uuid.uuid4())
        self.active_connections[connection_id] = websocket
        logger.info(f"[HUB] Client {connection_id} connected")
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection: cancel its log streams and leave all groups."""
        handles = await self.streams.pop_connection(connection_id)
        for handle in handles:
            handle.cancel()

        for members in self.groups.values():
            members.discard(connection_id)
        self.groups = {pod: members for pod, members in self.groups.items() if members}

        self.active_connections.pop(connection_id, None)
        logger.info(f"[HUB] Client {connection_id} disconnected ({len(handles)} log streams cancelled)")

    # =========================================================================
    # GROUPS
    # =========================================================================

    async def subscribe(self, connection_id: str, pod_name: str) -> None:
        self.groups.setdefault(pod_name, set()).add(connection_id)
        logger.info(f"[HUB] Client {connection_id} subscribed to pod {pod_name}")

    async def unsubscribe(self, connection_id: str, pod_name: str) -> None:
        members = self.groups.get(pod_name)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self.groups[pod_name]
        logger.info(f"[HUB] Client {connection_id} unsubscribed from pod {pod_name}")

    def group_members(self, pod_name: str) -> Set[str]:
        return set(self.groups.get(pod_name, ()))

    # =========================================================================
    # SENDING
    # =========================================================================

    async def send_to_connection(self, connection_id: str, message: dict) -> bool:
        """Send a JSON message to one connection. Returns False if it is gone."""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"[HUB] Send to {connection_id} failed: {e}")
            return False

    async def _send_many(self, connection_ids: List[str], message: dict) -> None:
        dead_connections = []
        for connection_id in connection_ids:
            if not await self.send_to_connection(connection_id, message):
                dead_connections.append(connection_id)

        for connection_id in dead_connections:
            await self.disconnect(connection_id)

    async def send_to_group(self, pod_name: str, message: dict) -> None:
        """Send a message to every connection subscribed to a pod."""
        await self._send_many(sorted(self.group_members(pod_name)), message)

    async def broadcast(self, message: dict) -> None:
        """Send a message to every connected observer."""
        await self._send_many(list(self.active_connections), message)

    # =========================================================================
    # LOG STREAMS
    # =========================================================================

    async def start_log_stream(self, connection_id: str, pod_name: str) -> bool:
        """
        Start streaming a pod's log to one connection.

        Returns:
            False if a stream for this (connection, pod) already exists
        """
        handle = StreamHandle(connection_id=connection_id, pod_name=pod_name)
        if not await self.streams.add_if_absent(handle):
            return False

        handle.task = asyncio.create_task(self._stream_logs(handle))
        logger.info(f"[HUB] Started log stream for {pod_name} (Client: {connection_id})")
        return True

    async def stop_log_stream(self, connection_id: str, pod_name: str) -> bool:
        """Cancel and remove a log stream. Returns False if none was running."""
        handle = await self.streams.pop(connection_id, pod_name)
        if handle is None:
            return False

        handle.cancel()
        logger.info(f"[HUB] Stopped log stream for {pod_name} (Client: {connection_id})")
        return True

    async def _stream_logs(self, handle: StreamHandle) -> None:
        """
        Send the recent log tail line by line, then idle until cancelled.

        Continuous tailing is not implemented; after the initial tail the task
        only keeps the handle alive.
        """
        settings = self.settings
        try:
            logs = await self.pod_manager.get_pod_logs(
                handle.pod_name, tail_lines=settings.log_stream_tail_lines
            )

            for line in (logs or "").split("\n"):
                if not line.strip():
                    continue
                if handle.cancelled:
                    break

                entry = LogEntry(
                    timestamp=datetime.now(timezone.utc).isoformat(),
                    message=line,
                )
                await self.send_to_connection(handle.connection_id, {
                    "type": "PodLog",
                    "pod": handle.pod_name,
                    "entry": entry.model_dump(by_alias=True),
                })
                await asyncio.sleep(settings.log_stream_line_delay_seconds)

            # TODO: follow the log (read_namespaced_pod_log with follow=True) instead of idling
            while not handle.cancelled:
                try:
                    await asyncio.wait_for(handle.cancel_event.wait(), settings.log_stream_idle_seconds)
                except asyncio.TimeoutError:
                    continue

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"[HUB] Error streaming logs for {handle.pod_name}: {e}", exc_info=True)
        finally:
            await self.streams.discard(handle)

    # =========================================================================
    # MESSAGES
    # =========================================================================

    async def handle_message(self, connection_id: str, data: dict) -> None:
        """Dispatch one client message: {"action": ..., "pod": ...}."""
        action = data.get("action")
        pod_name = data.get("pod")

        if action == "ping":
            await self.send_to_connection(connection_id, {"type": "pong"})
            return

        if not pod_name:
            await self.send_to_connection(connection_id, {"type": "error", "message": "pod is required"})
            return

        if action == "subscribe":
            await self.subscribe(connection_id, pod_name)
        elif action == "unsubscribe":
            await self.unsubscribe(connection_id, pod_name)
        elif action == "start_log_stream":
            await self.start_log_stream(connection_id, pod_name)
        elif action == "stop_log_stream":
            await self.stop_log_stream(connection_id, pod_name)
        else:
            await self.send_to_connection(connection_id, {"type": "error", "message": f"Unknown action: {action}"})

    async def close(self) -> None:
        """Cancel every stream and forget all connections (application shutdown)."""
        for connection_id in list(self.active_connections):
            await self.disconnect(connection_id)
