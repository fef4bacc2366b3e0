"""
Unit tests for upload, download and listing over the exec transport.
"""

import asyncio
import base64
from unittest.mock import AsyncMock

import pytest

from podmanager.exceptions import InvalidPathError, RemoteCommandError
from podmanager.services.file_transfer import (
    FileTransferService,
    build_download_command,
    build_list_command,
    build_upload_command,
)
from podmanager.services.kubernetes.exec_transport import ExecResult


class InMemoryPodTransport:
    """
    Interprets the shell commands FileTransferService sends, against a dict
    of files, the way `base64`, `base64 -d` and `ls` would inside a pod.
    """

    def __init__(self):
        self.files = {}
        self.calls = []

    @staticmethod
    def _unquote(arg: str) -> str:
        assert arg.startswith("'") and arg.endswith("'")
        return arg[1:-1].replace("'\"'\"'", "'")

    async def exec(self, pod_name, command, stdin=None, timeout=None, tty=False, cancel_event=None):
        self.calls.append((pod_name, command, stdin))
        script = command[2]

        if script.startswith("base64 -d > "):
            path = self._unquote(script[len("base64 -d > "):])
            self.files[path] = base64.b64decode(stdin)
            return ExecResult(stdout="", stderr="")

        if script.startswith("base64 "):
            path = self._unquote(script[len("base64 "):])
            if path not in self.files:
                return ExecResult(stdout="", stderr=f"base64: {path}: No such file or directory\n", returncode=1)
            encoded = base64.encodebytes(self.files[path]).decode("ascii")  # wrapped at 76 columns
            return ExecResult(stdout=encoded, stderr="", returncode=0)

        raise AssertionError(f"unexpected command {command}")


@pytest.fixture
def pod_transport():
    return InMemoryPodTransport()


@pytest.fixture
def file_transfer(pod_transport):
    return FileTransferService(pod_transport)


@pytest.mark.unit
class TestCommands:

    def test_upload_command_quotes_path(self):
        assert build_upload_command("/tmp/it's here.txt") == [
            "/bin/sh", "-c", "base64 -d > '/tmp/it'\"'\"'s here.txt'"
        ]

    def test_download_command(self):
        assert build_download_command("/etc/hosts") == ["/bin/sh", "-c", "base64 '/etc/hosts'"]

    def test_list_command(self):
        assert build_list_command("/tmp/") == ["/bin/sh", "-c", "ls -la --time-style=long-iso '/tmp/'"]


@pytest.mark.unit
class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_then_download_returns_same_bytes(self, file_transfer):
        content = bytes(range(256)) * 40

        upload = await file_transfer.upload_file("p1", "/data", "blob.bin", content)
        download = await file_transfer.download_file("p1", upload.file_path)

        assert upload.success is True
        assert upload.file_path == "/data/blob.bin"
        assert download.content == content
        assert download.file_name == "blob.bin"

    @pytest.mark.asyncio
    async def test_upload_defaults_to_root_and_uses_basename(self, file_transfer, pod_transport):
        upload = await file_transfer.upload_file("p1", None, "C:\\Users\\me\\report.pdf", b"%PDF")

        assert upload.file_path == "/report.pdf"
        pod_name, command, stdin = pod_transport.calls[0]
        assert command == build_upload_command("/report.pdf")
        assert stdin == base64.b64encode(b"%PDF").decode("ascii")

    @pytest.mark.asyncio
    async def test_stderr_makes_upload_fail(self):
        transport = AsyncMock()
        transport.exec.return_value = ExecResult(stdout="", stderr="sh: can't create /ro/a: Read-only file system\n")
        service = FileTransferService(transport)

        result = await service.upload_file("p1", "/ro", "a", b"x")

        assert result.success is False
        assert result.error == "sh: can't create /ro/a: Read-only file system"
        assert result.file_path is None

    @pytest.mark.asyncio
    async def test_empty_file_name_rejected(self, file_transfer, pod_transport):
        with pytest.raises(InvalidPathError):
            await file_transfer.upload_file("p1", "/tmp", "  ", b"x")

        assert pod_transport.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [".", "..", "/tmp/..", "C:\\dir\\.."])
    async def test_dot_file_names_rejected(self, file_transfer, pod_transport, name):
        with pytest.raises(InvalidPathError):
            await file_transfer.upload_file("p1", "/tmp", name, b"x")

        assert pod_transport.calls == []

    @pytest.mark.asyncio
    async def test_traversal_rejected_before_exec(self, file_transfer, pod_transport):
        with pytest.raises(InvalidPathError):
            await file_transfer.upload_file("p1", "/tmp/../etc", "passwd", b"x")

        assert pod_transport.calls == []


@pytest.mark.unit
class TestDownload:

    @pytest.mark.asyncio
    async def test_missing_file_raises_remote_error(self, file_transfer):
        with pytest.raises(RemoteCommandError) as exc_info:
            await file_transfer.download_file("p1", "/nope.txt")

        assert exc_info.value.stderr == "base64: /nope.txt: No such file or directory"

    @pytest.mark.asyncio
    async def test_stderr_wins_over_stdout(self):
        transport = AsyncMock()
        transport.exec.return_value = ExecResult(stdout="aGVsbG8=", stderr="warning: something", returncode=0)
        service = FileTransferService(transport)

        with pytest.raises(RemoteCommandError):
            await service.download_file("p1", "/a.txt")

    @pytest.mark.asyncio
    async def test_garbage_output_raises_remote_error(self):
        transport = AsyncMock()
        transport.exec.return_value = ExecResult(stdout="not*base64!", stderr="")
        service = FileTransferService(transport)

        with pytest.raises(RemoteCommandError):
            await service.download_file("p1", "/a.txt")

    @pytest.mark.asyncio
    async def test_relative_path_rejected(self, file_transfer):
        with pytest.raises(InvalidPathError):
            await file_transfer.download_file("p1", "etc/passwd")


@pytest.mark.unit
class TestListFiles:

    @pytest.mark.asyncio
    async def test_lists_directory(self):
        transport = AsyncMock()
        transport.exec.return_value = ExecResult(
            stdout="total 4\n-rw-r--r-- 1 root root 12 2024-01-15 10:32 a.txt\n",
            stderr="",
        )
        service = FileTransferService(transport)

        files = await service.list_files("p1", "/tmp")

        assert [f.name for f in files] == ["a.txt"]
        transport.exec.assert_awaited_once_with("p1", build_list_command("/tmp/"), cancel_event=None)

    @pytest.mark.asyncio
    async def test_stderr_raises(self):
        transport = AsyncMock()
        transport.exec.return_value = ExecResult(stdout="", stderr="ls: /x/: No such file or directory\n")
        service = FileTransferService(transport)

        with pytest.raises(RemoteCommandError):
            await service.list_files("p1", "/x")


@pytest.mark.unit
class TestCancellation:

    @pytest.fixture
    def transport(self):
        transport = AsyncMock()
        transport.exec.return_value = ExecResult(stdout="", stderr="")
        return transport

    @pytest.mark.asyncio
    async def test_upload_forwards_cancel_event(self, transport):
        cancel_event = asyncio.Event()

        await FileTransferService(transport).upload_file("p1", "/tmp", "a.txt", b"x", cancel_event=cancel_event)

        assert transport.exec.await_args.kwargs["cancel_event"] is cancel_event

    @pytest.mark.asyncio
    async def test_download_forwards_cancel_event(self, transport):
        transport.exec.return_value = ExecResult(stdout="aGVsbG8=", stderr="")
        cancel_event = asyncio.Event()

        result = await FileTransferService(transport).download_file("p1", "/a.txt", cancel_event=cancel_event)

        assert result.content == b"hello"
        assert transport.exec.await_args.kwargs["cancel_event"] is cancel_event

    @pytest.mark.asyncio
    async def test_list_forwards_cancel_event(self, transport):
        cancel_event = asyncio.Event()

        await FileTransferService(transport).list_files("p1", "/tmp", cancel_event=cancel_event)

        assert transport.exec.await_args.kwargs["cancel_event"] is cancel_event
