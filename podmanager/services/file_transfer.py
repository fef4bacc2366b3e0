"""
File Transfer Service

Moves files in and out of a running pod using only the exec channel:

- Upload: base64 text is written to the stdin of `base64 -d > '<path>'`
- Download: `base64 '<path>'` is run and its stdout decoded
- Listing: `ls -la` output is parsed into FileInfo entries

Any stderr output is treated as a failed command, even when stdout has data.

Memory: uploads hold the payload plus its base64 text (about 2.33x the
payload size). The HTTP layer caps uploads at settings.max_upload_bytes.
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import InvalidPathError, RemoteCommandError
from ..schemas import FileInfo, UploadResponse
from ..utils.listing import parse_listing
from ..utils.paths import basename, escape_shell_arg, join_path, normalize_directory, normalize_file
from .kubernetes.exec_transport import ExecTransport, get_exec_transport

logger = logging.getLogger(__name__)


@dataclass
class DownloadResult:
    content: bytes
    file_name: str


def build_upload_command(target_path: str) -> List[str]:
    return ["/bin/sh", "-c", f"base64 -d > {escape_shell_arg(target_path)}"]


def build_download_command(file_path: str) -> List[str]:
    return ["/bin/sh", "-c", f"base64 {escape_shell_arg(file_path)}"]


def build_list_command(directory: str) -> List[str]:
    return ["/bin/sh", "-c", f"ls -la --time-style=long-iso {escape_shell_arg(directory)}"]


class FileTransferService:
    """Upload, download and list files inside managed pods."""

    def __init__(self, transport: ExecTransport):
        self.transport = transport

    async def upload_file(
        self,
        pod_name: str,
        directory: Optional[str],
        file_name: str,
        content: bytes,
        cancel_event: Optional[asyncio.Event] = None
    ) -> UploadResponse:
        """
        Write `content` to `<directory>/<basename(file_name)>` inside the pod.

        Args:
            pod_name: Target pod
            directory: Absolute directory in the pod; blank means "/"
            file_name: Client file name, only its last component is used
            content: File bytes
            cancel_event: Setting this event aborts the transfer

        Returns:
            UploadResponse with the resolved path, or the trimmed stderr as error

        Raises:
            InvalidPathError: Bad directory, or a file name that is empty, "." or ".."
        """
        target_dir = normalize_directory(directory, default="/")

        name = basename(file_name or "").strip()
        if not name:
            raise InvalidPathError("File name is required")
        if name in (".", ".."):
            raise InvalidPathError(f"Invalid file name: {name}")

        target_path = join_path(target_dir, name)
        encoded = base64.b64encode(content).decode("ascii")

        logger.info(f"Uploading {len(content)} bytes to pod {pod_name}: {target_path}")

        result = await self.transport.exec(
            pod_name,
            build_upload_command(target_path),
            stdin=encoded,
            cancel_event=cancel_event
        )

        if result.stderr:
            error = result.stderr.strip()
            logger.warning(f"Upload to pod {pod_name} failed: {error}")
            return UploadResponse(success=False, error=error)

        return UploadResponse(success=True, file_path=target_path)

    async def download_file(
        self,
        pod_name: str,
        file_path: str,
        cancel_event: Optional[asyncio.Event] = None
    ) -> DownloadResult:
        """
        Read a file from the pod.

        Raises:
            InvalidPathError: Bad file path
            RemoteCommandError: The remote command wrote to stderr
        """
        path = normalize_file(file_path)

        result = await self.transport.exec(pod_name, build_download_command(path), cancel_event=cancel_event)

        if result.stderr:
            raise RemoteCommandError(result.stderr.strip())

        try:
            content = base64.b64decode("".join(result.stdout.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise RemoteCommandError(f"Invalid data received from pod: {e}") from e

        logger.info(f"Downloaded {len(content)} bytes from pod {pod_name}: {path}")
        return DownloadResult(content=content, file_name=basename(path))

    async def list_files(
        self,
        pod_name: str,
        directory: Optional[str],
        cancel_event: Optional[asyncio.Event] = None
    ) -> List[FileInfo]:
        """
        List a directory in the pod.

        Raises:
            InvalidPathError: Bad directory path
            RemoteCommandError: The remote command wrote to stderr
        """
        path = normalize_directory(directory, default="/")

        result = await self.transport.exec(pod_name, build_list_command(path), cancel_event=cancel_event)

        if result.stderr:
            raise RemoteCommandError(result.stderr.strip())

        files = parse_listing(result.stdout)
        logger.debug(f"Found {len(files)} entries in {path} on pod {pod_name}")
        return files


# Global instance - lazily initialized
_file_transfer_instance: Optional[FileTransferService] = None


def get_file_transfer() -> FileTransferService:
    """Get or create the global file transfer service instance."""
    global _file_transfer_instance
    if _file_transfer_instance is None:
        _file_transfer_instance = FileTransferService(get_exec_transport())
    return _file_transfer_instance
