"""
Time budgets for fetches and transforms.

Transforms are bounded by a timeout picked from the payload's size class,
so a 200 MB video gets longer than a 40 KB sponsor logo, and nothing waits
forever on a stuck decoder.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from .errors import MediaTimeoutError

T = TypeVar("T")

MIB = 1024 * 1024


@dataclass(frozen=True)
class TimeoutPolicy:
    fetch_seconds: float = 60.0
    small_max_bytes: int = 5 * MIB
    medium_max_bytes: int = 50 * MIB
    small_seconds: float = 15.0
    medium_seconds: float = 60.0
    large_seconds: float = 180.0

    def size_class(self, size_bytes: int) -> str:
        if size_bytes < self.small_max_bytes:
            return "small"
        if size_bytes < self.medium_max_bytes:
            return "medium"
        return "large"

    def for_size(self, size_bytes: int) -> float:
        return {
            "small": self.small_seconds,
            "medium": self.medium_seconds,
            "large": self.large_seconds,
        }[self.size_class(size_bytes)]


async def bounded(awaitable: Awaitable[T], seconds: float, operation: str) -> T:
    """Await with a deadline, converting expiry into MediaTimeoutError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise MediaTimeoutError(f"{operation} timed out after {seconds:.0f}s")
