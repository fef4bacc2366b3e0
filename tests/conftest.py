"""
Test configuration and fixtures for pytest.

Fixtures include: fast settings, a scripted stand-in for the kubernetes
WSClient used by exec tests, fake websockets for the hub, and a mocked
KubernetesClient.
"""

import sys
import os
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest
from kubernetes.stream.ws_client import V5_CHANNEL_PROTOCOL

# Add the project root to sys.path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    Sets up test environment variables and registers custom markers.
    """
    # Set test environment variables BEFORE any app imports
    os.environ["K8S_NAMESPACE"] = "test-ns"
    os.environ["LOG_LEVEL"] = "DEBUG"

    # Import and clear settings cache after env vars are set
    from podmanager.config import get_settings
    get_settings.cache_clear()

    # Register custom markers
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "kubernetes: mark test as exercising Kubernetes client code")


@pytest.fixture
def fast_settings():
    """Settings with all waits shortened so loops finish quickly."""
    from podmanager.config import Settings

    return Settings(
        k8s_namespace="test-ns",
        delete_poll_attempts=3,
        delete_poll_interval_seconds=0,
        exec_read_timeout_seconds=0.3,
        monitor_interval_seconds=0.01,
        monitor_error_backoff_seconds=0.01,
        log_stream_line_delay_seconds=0,
        log_stream_idle_seconds=0.05,
    )


class FakeWSClient:
    """
    Scripted replacement for kubernetes.stream.ws_client.WSClient.

    Every update() call delivers the next (channel, data) frame. Once the
    script is exhausted the channel either closes (close_when_done=True, the
    remote command exited) or stays open like a command waiting for stdin.
    """

    def __init__(
        self,
        frames: List[Tuple[int, str]] = None,
        close_when_done: bool = True,
        subprotocol: Optional[str] = None,
        fail_on_update: Exception = None,
    ):
        self.frames = list(frames or [])
        self.close_when_done = close_when_done
        self.fail_on_update = fail_on_update
        self.subprotocol = subprotocol
        self.closed_channels: List[int] = []
        self.stdin_writes: List[str] = []
        self.closed = False
        self._open = True
        self._buffers = {}
        self._lock = threading.Lock()

    def is_open(self) -> bool:
        return self._open

    def update(self, timeout=0) -> None:
        if self.fail_on_update is not None:
            raise self.fail_on_update

        with self._lock:
            if self.frames:
                channel, data = self.frames.pop(0)
                self._buffers[channel] = self._buffers.get(channel, "") + data
                return
            if self.close_when_done:
                self._open = False
                return
        time.sleep(timeout)

    def read_channel(self, channel, timeout=0) -> str:
        with self._lock:
            return self._buffers.pop(channel, "")

    def write_stdin(self, data) -> None:
        self.stdin_writes.append(data)

    def close_channel(self, channel) -> None:
        # WSClient only sends the close frame on the v5 protocol
        if self.subprotocol != V5_CHANNEL_PROTOCOL:
            return
        self.closed_channels.append(channel)

    def close(self, **kwargs) -> None:
        self.closed = True
        self._open = False

    @property
    def stdin_text(self) -> str:
        return "".join(self.stdin_writes)


@pytest.fixture
def fake_ws_factory():
    """Build FakeWSClient instances: fake_ws_factory(frames, close_when_done=...)."""
    return FakeWSClient


@pytest.fixture
def mock_k8s():
    """Mocked KubernetesClient with async resource methods."""
    k8s = Mock()
    k8s.namespace = "test-ns"
    k8s.container_name = "main"
    k8s.list_pods = AsyncMock(return_value=[])
    k8s.read_pod = AsyncMock(return_value=None)
    k8s.create_pod = AsyncMock(side_effect=lambda pod: pod)
    k8s.delete_pod = AsyncMock(return_value=True)
    k8s.read_pod_log = AsyncMock(return_value="")
    k8s.list_services = AsyncMock(return_value=[])
    k8s.read_service = AsyncMock(return_value=None)
    k8s.create_service = AsyncMock(side_effect=lambda service: service)
    k8s.delete_service = AsyncMock(return_value=True)
    k8s.open_exec_stream = Mock()
    return k8s


class FakeWebSocket:
    """Collects messages sent by the hub; can be told to fail on send."""

    def __init__(self, fail_on_send: bool = False):
        self.accept = AsyncMock()
        self.fail_on_send = fail_on_send
        self.messages: List[dict] = []

    async def send_json(self, message: dict) -> None:
        if self.fail_on_send:
            raise RuntimeError("connection closed")
        self.messages.append(message)

    def of_type(self, message_type: str) -> List[dict]:
        return [m for m in self.messages if m.get("type") == message_type]


@pytest.fixture
def fake_websocket_factory():
    return FakeWebSocket
