"""
Exec Transport

Runs a command inside a pod over the Kubernetes exec websocket and returns
its stdout and stderr as text.

The websocket multiplexes several logical streams; every frame starts with a
channel byte (0 stdin, 1 stdout, 2 stderr, 3 status). The kubernetes client
parses frames in WSClient.update(); a pump thread drives it and routes each
channel's data into its own asyncio queue, so bytes of one stream are never
mixed with another and keep their order.

Read deadlines:
- With stdin: stdout and stderr are each read with an independent deadline
  (settings.exec_read_timeout_seconds). Whatever arrived by then is returned.
  Remote commands such as `base64 -d` only finish once stdin is closed, and
  not every API server honours the stdin close signal.
- Without stdin: reads run until the remote command exits and the channel
  closes.

The channel is closed on every exit path, including cancellation.
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from kubernetes.stream.ws_client import (
    STDIN_CHANNEL, STDOUT_CHANNEL, STDERR_CHANNEL, ERROR_CHANNEL, V5_CHANNEL_PROTOCOL
)

from ...config import get_settings
from ...exceptions import ExecChannelError
from .client import get_k8s_client

logger = logging.getLogger(__name__)

# How long one WSClient.update() may block before the pump re-checks its stop flag
PUMP_POLL_SECONDS = 0.1

STDIN_CHUNK_SIZE = 64 * 1024

_EOF = None


@dataclass
class ExecResult:
    """Output of one exec call. Any stderr text means the command failed."""
    stdout: str
    stderr: str
    returncode: Optional[int] = None

    @property
    def failed(self) -> bool:
        return bool(self.stderr)


def parse_exit_status(status_text: str) -> Optional[int]:
    """
    Extract the exit code from the status channel payload.

    The payload is a metav1.Status object, e.g.
    {"status": "Failure", "reason": "NonZeroExitCode",
     "details": {"causes": [{"reason": "ExitCode", "message": "2"}]}}
    """
    if not status_text:
        return None
    try:
        status = json.loads(status_text)
    except ValueError:
        return None

    if status.get("status") == "Success":
        return 0

    for cause in (status.get("details") or {}).get("causes") or []:
        if cause.get("reason") == "ExitCode":
            try:
                return int(cause.get("message"))
            except (TypeError, ValueError):
                return None
    return None


class ExecSession:
    """
    One open exec channel. Use as an async context manager.

    Usage:
        async with ExecSession(ws) as session:
            await session.write_stdin(data)
            await session.close_stdin()
            session.start_pump()
            stdout, stderr = await asyncio.gather(
                session.read_stream(STDOUT_CHANNEL, 2.0),
                session.read_stream(STDERR_CHANNEL, 2.0),
            )
    """

    def __init__(self, ws):
        self._ws = ws
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queues: Dict[int, asyncio.Queue] = {}
        self._stop = threading.Event()
        self._pump_future: Optional[asyncio.Future] = None
        self._pump_error: Optional[BaseException] = None
        self._status_chunks: List[str] = []

    async def __aenter__(self) -> "ExecSession":
        self._loop = asyncio.get_running_loop()
        self._queues = {
            STDOUT_CHANNEL: asyncio.Queue(),
            STDERR_CHANNEL: asyncio.Queue(),
        }
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # stdin
    # ------------------------------------------------------------------

    def _write_all(self, data) -> None:
        for offset in range(0, len(data), STDIN_CHUNK_SIZE):
            self._ws.write_stdin(data[offset:offset + STDIN_CHUNK_SIZE])

    async def write_stdin(self, data) -> None:
        """Write the whole payload to the stdin sub-stream."""
        try:
            await asyncio.to_thread(self._write_all, data)
        except Exception as e:
            raise ExecChannelError(f"Failed to write to exec stdin: {e}") from e

    async def close_stdin(self) -> bool:
        """
        Signal EOF on stdin.

        Only the v5 channel protocol can close a single sub-stream. On older
        protocols the command sees EOF when the whole channel closes.

        Returns:
            True if the close frame was sent
        """
        if getattr(self._ws, "subprotocol", None) != V5_CHANNEL_PROTOCOL:
            logger.debug("[K8S:EXEC] stdin close not supported by negotiated protocol, relying on read deadline")
            return False

        try:
            await asyncio.to_thread(self._ws.close_channel, STDIN_CHANNEL)
            return True
        except Exception as e:
            raise ExecChannelError(f"Failed to close exec stdin: {e}") from e

    # ------------------------------------------------------------------
    # stdout / stderr
    # ------------------------------------------------------------------

    def _publish(self, channel: int, data) -> None:
        self._loop.call_soon_threadsafe(self._queues[channel].put_nowait, data)

    def _drain_channels(self) -> None:
        for channel in (STDOUT_CHANNEL, STDERR_CHANNEL):
            data = self._ws.read_channel(channel)
            if data:
                self._publish(channel, data)

        status = self._ws.read_channel(ERROR_CHANNEL)
        if status:
            self._status_chunks.append(status)

    def _pump(self) -> None:
        """Demultiplex frames until the channel closes or close() is called."""
        try:
            while not self._stop.is_set() and self._ws.is_open():
                self._ws.update(timeout=PUMP_POLL_SECONDS)
                self._drain_channels()
            # Frames parsed by the last update() are still buffered in WSClient
            self._drain_channels()
        except Exception as e:
            if not self._stop.is_set():
                logger.warning(f"[K8S:EXEC] Exec channel read failed: {e}")
                self._pump_error = e
        finally:
            for channel in self._queues:
                self._publish(channel, _EOF)

    def start_pump(self) -> None:
        """Start reading frames in a worker thread."""
        if self._pump_future is None:
            self._pump_future = asyncio.ensure_future(asyncio.to_thread(self._pump))

    async def read_stream(self, channel: int, timeout: Optional[float] = None) -> str:
        """
        Collect one stream until EOF or until `timeout` seconds have passed.

        On timeout the partial output is returned.
        """
        queue = self._queues[channel]
        chunks: List[str] = []

        async def collect() -> None:
            while True:
                chunk = await queue.get()
                if chunk is _EOF:
                    return
                chunks.append(chunk)

        try:
            await asyncio.wait_for(collect(), timeout)
        except asyncio.TimeoutError:
            logger.debug(f"[K8S:EXEC] Read deadline of {timeout}s reached on channel {channel}")
            while not queue.empty():
                chunk = queue.get_nowait()
                if chunk is not _EOF:
                    chunks.append(chunk)

        return "".join(chunks)

    @property
    def pump_error(self) -> Optional[BaseException]:
        return self._pump_error

    @property
    def returncode(self) -> Optional[int]:
        return parse_exit_status("".join(self._status_chunks))

    async def close(self) -> None:
        """Stop the pump and close the websocket."""
        self._stop.set()
        try:
            await asyncio.to_thread(self._ws.close)
        except Exception as e:
            logger.debug(f"[K8S:EXEC] Error closing exec channel: {e}")

        if self._pump_future is not None:
            # The pump exits within one poll interval once the socket is closed
            await asyncio.wait([self._pump_future], timeout=PUMP_POLL_SECONDS * 10)


def _close_abandoned(opening: asyncio.Future) -> None:
    """Done-callback for an open whose caller was cancelled: close the stream if one was opened."""
    if opening.cancelled() or opening.exception() is not None:
        return
    logger.debug("[K8S:EXEC] Closing exec channel opened after the call was cancelled")
    try:
        opening.result().close()
    except Exception as e:
        logger.warning(f"[K8S:EXEC] Failed to close abandoned exec channel: {e}")


class ExecTransport:
    """Runs commands in managed pods through the Kubernetes exec API."""

    def __init__(self, k8s_client, settings=None):
        self.k8s = k8s_client
        self.settings = settings or get_settings()

    @staticmethod
    async def _await_unless_cancelled(work: asyncio.Future, cancel_event: Optional[asyncio.Event]):
        if cancel_event is None:
            return await work

        if cancel_event.is_set():
            work.cancel()
            raise asyncio.CancelledError()

        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait([work, waiter], return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if not work.done():
            work.cancel()
            raise asyncio.CancelledError()
        return work.result()

    async def _open(self, pod_name, command, stdin, tty, cancel_event):
        # The blocking open cannot be interrupted; shield it so a stream that
        # arrives after cancellation is still seen, and closed, by _close_abandoned.
        opening = asyncio.ensure_future(asyncio.to_thread(
            self.k8s.open_exec_stream,
            pod_name,
            command,
            stdin=stdin,
            tty=tty
        ))
        try:
            return await self._await_unless_cancelled(asyncio.shield(opening), cancel_event)
        except asyncio.CancelledError:
            opening.add_done_callback(_close_abandoned)
            raise

    async def exec(
        self,
        pod_name: str,
        command: List[str],
        stdin=None,
        timeout: Optional[float] = None,
        tty: bool = False,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ExecResult:
        """
        Execute a command in a pod.

        Args:
            pod_name: Target pod
            command: Command vector, e.g. ["/bin/sh", "-c", "ls -la /"]
            stdin: Optional text or bytes written to the command's stdin, then closed
            timeout: Per-stream read deadline; defaults to
                settings.exec_read_timeout_seconds when stdin is given, none otherwise
            tty: Allocate a pseudo-terminal (stderr is merged into stdout)
            cancel_event: Setting this event aborts the call like task cancellation

        Returns:
            ExecResult with the collected stdout and stderr

        Raises:
            ExecChannelError: The channel could not be opened or failed mid-read
            asyncio.CancelledError: The calling task was cancelled or cancel_event was set
        """
        use_stdin = stdin is not None
        if timeout is None and use_stdin:
            timeout = self.settings.exec_read_timeout_seconds

        if cancel_event is not None and cancel_event.is_set():
            raise asyncio.CancelledError()

        ws = await self._open(pod_name, command, use_stdin, tty, cancel_event)

        async with ExecSession(ws) as session:
            if use_stdin:
                await self._await_unless_cancelled(asyncio.ensure_future(session.write_stdin(stdin)), cancel_event)
                await self._await_unless_cancelled(asyncio.ensure_future(session.close_stdin()), cancel_event)

            session.start_pump()
            reads = asyncio.gather(
                session.read_stream(STDOUT_CHANNEL, timeout),
                session.read_stream(STDERR_CHANNEL, timeout),
            )
            stdout, stderr = await self._await_unless_cancelled(reads, cancel_event)

            if session.pump_error is not None and not stdout and not stderr:
                raise ExecChannelError(f"Exec channel to pod {pod_name} failed: {session.pump_error}")

            result = ExecResult(stdout=stdout, stderr=stderr, returncode=session.returncode)

        logger.debug(
            f"[K8S:EXEC] Command in pod {pod_name} finished "
            f"(stdout {len(result.stdout)} chars, stderr {len(result.stderr)} chars, exit {result.returncode})"
        )
        return result


# Global instance - lazily initialized
_exec_transport_instance: Optional[ExecTransport] = None


def get_exec_transport() -> ExecTransport:
    """Get or create the global exec transport instance."""
    global _exec_transport_instance
    if _exec_transport_instance is None:
        _exec_transport_instance = ExecTransport(get_k8s_client())
    return _exec_transport_instance
