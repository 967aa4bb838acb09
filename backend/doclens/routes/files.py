"""DocLens File Routes

Endpoints:
- POST /api/files - Presign an S3 upload and record the file
- GET /api/files - List the user's files (newest first)
- GET /api/files/download-url?key=... - Presigned download URL for one of the user's files
"""

from fastapi import APIRouter, Depends, Query
import logging

from doclens.dependencies import get_current_user, get_file_storage
from doclens.models.file import (
    CreateFileRequest,
    CreateFileResponse,
    DownloadUrlResponse,
    FileListResponse,
)
from doclens.services.file_storage import FileStorageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.post("", response_model=CreateFileResponse)
async def create_file(
    data: CreateFileRequest,
    user=Depends(get_current_user),
    file_storage: FileStorageService = Depends(get_file_storage),
):
    result = await file_storage.create_file(user["user_id"], data.file_name, data.file_type)
    return CreateFileResponse(**result)


@router.get("", response_model=FileListResponse)
async def list_files(
    user=Depends(get_current_user),
    file_storage: FileStorageService = Depends(get_file_storage),
):
    return FileListResponse(files=await file_storage.list_files(user["user_id"]))


@router.get("/download-url", response_model=DownloadUrlResponse)
async def get_download_url(
    key: str = Query(..., min_length=1),
    user=Depends(get_current_user),
    file_storage: FileStorageService = Depends(get_file_storage),
):
    return DownloadUrlResponse(url=await file_storage.get_download_url(user["user_id"], key))
