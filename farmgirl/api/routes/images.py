"""
Optimized image endpoint.

GET /img/<source key>?w=800&h=0&f=webp&q=82

Resolves the derivative (generating it on first request) and redirects
to its stored URL. The redirect carries a year-long immutable
Cache-Control: a given URL always names the same derivative, so browsers
and CDNs never need to ask again.
"""

import logging
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import RedirectResponse

from ..dependencies import DerivativeCacheDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/img/{source_key:path}",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    summary="Redirect to an optimized image derivative",
)
async def optimized_image(
    source_key: str,
    cache: DerivativeCacheDep,
    w: int = 0,
    h: int = 0,
    f: Optional[str] = None,
    q: int = 82,
) -> RedirectResponse:
    """
    Width/height of 0 mean unconstrained. Quality is clamped to 1-100,
    negative sizes to 0.
    """
    locator = await cache.resolve(
        source_key,
        width=max(0, w),
        height=max(0, h),
        format=f,
        quality=max(1, min(100, q)),
    )
    return RedirectResponse(
        url=locator.url,
        status_code=status.HTTP_302_FOUND,
        headers={"Cache-Control": locator.cache_control},
    )
