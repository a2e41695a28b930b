"""
Upload and content listing endpoints.

Direct-to-storage upload flow:
1. POST /upload/presign/{type} → presigned PUT URL + storage key
2. Client PUTs the file straight to object storage
3. POST /upload/complete → metadata entry recorded

Small files can instead be posted as multipart to POST /upload/{type}.

Plus YouTube links, listing by type and deletion. Field names are
camelCase to match what the site's admin page already sends.
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from ..dependencies import AdminKey, UploadCoordinatorDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PresignRequest(CamelModel):
    filename: Optional[str] = Field(default=None, description="Original file name")
    content_type: Optional[str] = Field(
        default=None,
        alias="contentType",
        description="MIME type the client will PUT with"
    )


class PresignResponse(CamelModel):
    success: bool = True
    upload_url: str = Field(alias="uploadUrl", description="Presigned PUT URL")
    key: str = Field(description="Storage key to report back on completion")
    url: str = Field(description="Public URL the object will have")
    expires_in: int = Field(alias="expiresIn", description="Seconds until the upload URL expires")


class CompleteRequest(CamelModel):
    type: Optional[str] = Field(default=None, description="photos, videos or sponsors")
    key: Optional[str] = Field(default=None, description="Storage key from the presign step")
    name: Optional[str] = Field(default=None, description="Display name")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class YouTubeLinkRequest(BaseModel):
    url: Optional[str] = None


class EntryResponse(BaseModel):
    success: bool = True
    entry: dict[str, Any]


class SuccessResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload/presign/{content_type}",
    response_model=PresignResponse,
    summary="Request a direct upload slot",
)
async def presign_upload(
    content_type: str,
    request: PresignRequest,
    api_key: AdminKey,
    coordinator: UploadCoordinatorDep,
) -> PresignResponse:
    """
    Reserve a storage key and return a presigned PUT URL for it.

    The URL is valid for 15 minutes (configurable) and only accepts a PUT
    with the declared content type to the returned key.
    """
    slot = await coordinator.request_upload_slot(
        content_type,
        request.filename,
        request.content_type,
    )
    return PresignResponse(
        upload_url=slot.upload_url,
        key=slot.storage_key,
        url=slot.public_url,
        expires_in=slot.expires_in_seconds,
    )


@router.post(
    "/upload/complete",
    response_model=EntryResponse,
    summary="Record a finished direct upload",
)
async def complete_upload(
    request: CompleteRequest,
    api_key: AdminKey,
    coordinator: UploadCoordinatorDep,
) -> EntryResponse:
    """
    Called by the client after its PUT to storage succeeded.

    The entry is added at the front of the type's list.
    """
    entry = await coordinator.complete_upload(
        request.type,
        request.key,
        display_name=request.name,
        mime_type=request.content_type,
    )
    return EntryResponse(entry=entry.to_record())


@router.post(
    "/upload/youtube",
    response_model=EntryResponse,
    summary="Link a YouTube video",
)
async def link_youtube(
    request: YouTubeLinkRequest,
    api_key: AdminKey,
    coordinator: UploadCoordinatorDep,
) -> EntryResponse:
    entry = await coordinator.link_external_video(request.url)
    return EntryResponse(entry=entry.to_record())


@router.get(
    "/data/{content_type}",
    response_model=list[dict[str, Any]],
    summary="List entries of a type, newest first",
)
async def list_entries(
    content_type: str,
    coordinator: UploadCoordinatorDep,
) -> list[dict[str, Any]]:
    return [entry.to_record() for entry in await coordinator.list_entries(content_type)]


@router.delete(
    "/delete/{content_type}/{entry_id}",
    response_model=SuccessResponse,
    summary="Delete an entry and its stored object",
)
async def delete_entry(
    content_type: str,
    entry_id: str,
    api_key: AdminKey,
    coordinator: UploadCoordinatorDep,
) -> SuccessResponse:
    """
    Remove an entry from the index, then its blob.

    Succeeds as soon as the entry is gone from the index; a failure to
    delete the blob itself is logged server-side only.
    """
    removed = await coordinator.delete_entry(content_type, entry_id)
    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entry not found",
        )
    return SuccessResponse()


# Registered last so /upload/complete and /upload/youtube match first.
@router.post(
    "/upload/{content_type}",
    response_model=EntryResponse,
    summary="Upload a small file through the API",
)
async def upload_file(
    content_type: str,
    file: Annotated[UploadFile, File(description="Photo, video or sponsor logo")],
    api_key: AdminKey,
    coordinator: UploadCoordinatorDep,
) -> EntryResponse:
    """
    Store a multipart upload and record it in one call.

    The whole file is read into memory, so large videos should use the
    presigned flow instead.
    """
    data = await file.read()

    logger.info(
        "Received file upload",
        extra={
            "content_type": content_type,
            "upload_filename": file.filename,
            "size_bytes": len(data),
        }
    )

    entry = await coordinator.upload_file(
        content_type,
        file.filename,
        data,
        file.content_type,
    )
    return EntryResponse(entry=entry.to_record())
