"""
On-demand derivative image cache.

A derivative is named by its DerivativeDescriptor, so the same request
always maps to the same object key. Resolution:

1. Compute the key from (source, width, height, format, quality).
2. HEAD the key. If it exists we are done: one round trip, no source
   fetch, no transform.
3. Otherwise fetch the source, transform it in memory, then PUT it.

Two concurrent misses for the same key may both transform and both write.
That is fine: both write a valid encoding of the same source at the same
parameters, and the last writer wins. What must never happen is a reader
seeing a partial object, so the PUT is always the last step and is only
issued with fully encoded bytes in hand.
"""

import asyncio
import logging
from typing import Optional

from .errors import ObjectNotFoundError, SourceNotFoundError
from .models import (
    IMMUTABLE_CACHE_CONTROL,
    DerivativeDescriptor,
    DerivativeLocator,
)
from .protocols import ImageTransformer, ObjectStore
from .timeouts import TimeoutPolicy, bounded

logger = logging.getLogger(__name__)


class DerivativeCache:
    """Resolves transform requests to stored, immutable derivative objects."""

    def __init__(
        self,
        store: ObjectStore,
        transformer: ImageTransformer,
        timeouts: Optional[TimeoutPolicy] = None,
        cache_control: str = IMMUTABLE_CACHE_CONTROL,
    ) -> None:
        self._store = store
        self._transformer = transformer
        self._timeouts = timeouts or TimeoutPolicy()
        self._cache_control = cache_control

    async def resolve(
        self,
        source_key: str,
        width: Optional[int] = 0,
        height: Optional[int] = 0,
        format: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> DerivativeLocator:
        """
        Return a locator for the derivative, generating it on a miss.

        Width or height of 0 leaves that axis unconstrained; both 0 means
        re-encode only. Raises SourceNotFoundError if the source is missing
        (nothing is written in that case).
        """
        descriptor = DerivativeDescriptor.build(source_key, width, height, format, quality)
        return await self.resolve_descriptor(descriptor)

    async def resolve_descriptor(self, descriptor: DerivativeDescriptor) -> DerivativeLocator:
        key = descriptor.key

        if await self._store.head(key):
            logger.debug("Derivative cache hit", extra={"derivative_key": key})
            return self._locator(key, generated=False)

        try:
            source = await bounded(
                self._store.get(descriptor.source_key),
                self._timeouts.fetch_seconds,
                "Source fetch",
            )
        except ObjectNotFoundError:
            raise SourceNotFoundError(f"Source not found: {descriptor.source_key}")

        encoded = await bounded(
            asyncio.to_thread(
                self._transformer.transform,
                source,
                descriptor.width,
                descriptor.height,
                descriptor.format,
                descriptor.quality,
            ),
            self._timeouts.for_size(len(source)),
            "Image transform",
        )

        await self._store.put(
            key,
            encoded,
            descriptor.format.mime_type,
            cache_control=self._cache_control,
        )

        logger.info(
            "Generated derivative",
            extra={
                "source_key": descriptor.source_key,
                "derivative_key": key,
                "source_bytes": len(source),
                "derivative_bytes": len(encoded),
            }
        )

        return self._locator(key, generated=True)

    def _locator(self, key: str, generated: bool) -> DerivativeLocator:
        return DerivativeLocator(
            key=key,
            url=self._store.public_url(key),
            cache_control=self._cache_control,
            generated=generated,
        )
