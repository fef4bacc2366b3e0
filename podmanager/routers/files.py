"""
Files Router

Upload, download and list files inside a running pod. All transfers go
through the pod's exec channel; nothing is mounted or copied via the node.

Path and remote command errors are mapped to 400 by the application's
exception handlers.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..exceptions import InvalidPathError
from ..schemas import FileInfo, UploadResponse
from ..services.file_transfer import FileTransferService, get_file_transfer

logger = logging.getLogger(__name__)
router = APIRouter()


def _upload_error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=UploadResponse(success=False, error=error).model_dump(by_alias=True),
    )


@router.post("/upload", response_model=UploadResponse, response_model_by_alias=True)
async def upload_file(
    pod_name: str,
    path: Optional[str] = Query(None),
    file: Optional[UploadFile] = File(None),
    file_transfer: FileTransferService = Depends(get_file_transfer)
):
    """
    Upload a file into `path` (a directory, "/" by default) inside the pod.

    Returns 400 when no file or an empty file was sent, 413 when the file
    exceeds settings.max_upload_bytes, and 400 with the remote error when the
    write fails.
    """
    max_bytes = get_settings().max_upload_bytes

    if file is None:
        return _upload_error(status.HTTP_400_BAD_REQUEST, "No file selected.")

    # Read one byte past the limit so oversize uploads are detected without buffering them whole
    content = await file.read(max_bytes + 1)
    if not content:
        return _upload_error(status.HTTP_400_BAD_REQUEST, "No file selected.")
    if len(content) > max_bytes:
        return _upload_error(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File exceeds the {max_bytes // (1024 * 1024)}MB limit.",
        )

    try:
        result = await file_transfer.upload_file(pod_name, path, file.filename or "", content)
    except InvalidPathError as e:
        return _upload_error(status.HTTP_400_BAD_REQUEST, str(e))

    if not result.success:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.model_dump(by_alias=True))

    return result


@router.get("/download")
async def download_file(
    pod_name: str,
    path: str = Query(...),
    file_transfer: FileTransferService = Depends(get_file_transfer)
):
    """Download a file from the pod as an attachment."""
    result = await file_transfer.download_file(pod_name, path)

    return Response(
        content=result.content,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.file_name)}"
        },
    )


@router.get("/list", response_model=List[FileInfo], response_model_by_alias=True)
async def list_files(
    pod_name: str,
    path: Optional[str] = Query(None),
    file_transfer: FileTransferService = Depends(get_file_transfer)
):
    """List a directory inside the pod ("/" by default)."""
    return await file_transfer.list_files(pod_name, path)
