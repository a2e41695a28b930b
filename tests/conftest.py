"""
Shared fixtures.

Everything here is in-memory: the mock object store, the in-memory index
and images generated with Pillow on the fly.
"""

import io

import pytest
from PIL import Image

from farmgirl.infrastructure.events import InMemoryEventSink
from farmgirl.infrastructure.metadata import InMemoryMetadataIndex
from farmgirl.infrastructure.storage import MockObjectStore


def make_image(width: int, height: int, format: str = "PNG", color=(200, 40, 40)) -> bytes:
    out = io.BytesIO()
    mode = "RGBA" if format == "PNG" else "RGB"
    Image.new(mode, (width, height), color).save(out, format=format)
    return out.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def image_format(data: bytes) -> str:
    with Image.open(io.BytesIO(data)) as image:
        return image.format


@pytest.fixture
def store() -> MockObjectStore:
    return MockObjectStore(public_url_base="https://cdn.example.com")


@pytest.fixture
def index() -> InMemoryMetadataIndex:
    return InMemoryMetadataIndex()


@pytest.fixture
def sink() -> InMemoryEventSink:
    return InMemoryEventSink()
