"""
Video poster endpoint.

The admin page calls this right after a video upload completes. The
server downloads the video from storage, grabs a frame two seconds in
with FFmpeg, stores it under thumbnails/ and attaches it to the entry.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from ..dependencies import AdminKey, PosterExtractorDep
from ...core.media.errors import MissingKeyError

logger = logging.getLogger(__name__)

router = APIRouter()


class PosterRequest(BaseModel):
    key: Optional[str] = Field(default=None, description="Storage key of the video")
    id: Optional[str] = Field(default=None, description="Entry to attach the poster to")


class PosterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    poster_key: str = Field(alias="posterKey")
    poster_url: str = Field(alias="posterUrl")


@router.post(
    "/video/poster",
    response_model=PosterResponse,
    summary="Generate a poster image for a stored video",
)
async def generate_poster(
    request: PosterRequest,
    api_key: AdminKey,
    extractor: PosterExtractorDep,
) -> PosterResponse:
    """
    Always regenerates; repeated calls overwrite the same poster key.
    """
    if not request.key:
        raise MissingKeyError("Missing key")

    poster = await extractor.extract_poster(request.key, entry_id=request.id)
    return PosterResponse(poster_key=poster.key, poster_url=poster.url)
