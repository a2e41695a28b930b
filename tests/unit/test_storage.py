"""
Unit tests for object storage clients.

The S3 store is exercised with botocore's Stubber, so no network or
credentials are involved.
"""

import asyncio
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.stub import Stubber

from farmgirl.core.media.errors import ObjectNotFoundError, StorageUnavailableError
from farmgirl.infrastructure.storage import (
    MockObjectStore,
    S3ObjectStore,
    StorageConfig,
    build_public_url,
    create_object_store,
)


class TestBuildPublicUrl:

    def test_public_base_wins(self):
        url = build_public_url(
            "photos/1-a.png",
            bucket_name="farm",
            endpoint_url="https://acct.r2.cloudflarestorage.com",
            public_url_base="https://cdn.example.com/",
        )

        assert url == "https://cdn.example.com/photos/1-a.png"

    def test_custom_endpoint_is_path_style(self):
        url = build_public_url("photos/1-a.png", "farm", endpoint_url="http://localhost:9000")

        assert url == "http://localhost:9000/farm/photos/1-a.png"

    def test_aws_default_region(self):
        assert build_public_url("photos/1-a.png", "farm") == "https://farm.s3.amazonaws.com/photos/1-a.png"

    def test_aws_other_region(self):
        url = build_public_url("photos/1-a.png", "farm", region="eu-west-1")

        assert url == "https://farm.s3.eu-west-1.amazonaws.com/photos/1-a.png"

    def test_key_is_percent_encoded(self):
        """Reserved characters in a key must not end the path early."""
        url = build_public_url("photos/1-cat_#1?%.png", "farm", public_url_base="https://cdn.example.com")

        assert url == "https://cdn.example.com/photos/1-cat_%231%3F%25.png"

    def test_s3_url_is_percent_encoded(self):
        url = build_public_url("photos/1-my cat#.png", "farm")

        assert url == "https://farm.s3.amazonaws.com/photos/1-my%20cat%23.png"


@pytest.fixture
def s3_store() -> S3ObjectStore:
    return S3ObjectStore(StorageConfig(
        bucket_name="farm",
        region="us-east-1",
        access_key_id="AKIDEXAMPLE",
        secret_access_key="secret",
    ))


class TestS3ObjectStore:
    """Tests for error mapping and presigning."""

    def test_head_missing_object(self, s3_store):
        with Stubber(s3_store._s3_client) as stubber:
            stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

            assert asyncio.run(s3_store.head("optimized/800x0/q82/photos/1-a.png.webp")) is False

    def test_head_existing_object(self, s3_store):
        with Stubber(s3_store._s3_client) as stubber:
            stubber.add_response(
                "head_object",
                {"ContentLength": 10},
                {"Bucket": "farm", "Key": "photos/1-a.png"},
            )

            assert asyncio.run(s3_store.head("photos/1-a.png")) is True

    def test_get_missing_object(self, s3_store):
        with Stubber(s3_store._s3_client) as stubber:
            stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

            with pytest.raises(ObjectNotFoundError):
                asyncio.run(s3_store.get("photos/nope.png"))

    def test_other_errors_are_unavailable(self, s3_store):
        with Stubber(s3_store._s3_client) as stubber:
            stubber.add_client_error("get_object", service_error_code="SlowDown", http_status_code=503)

            with pytest.raises(StorageUnavailableError):
                asyncio.run(s3_store.get("photos/1-a.png"))

    def test_put_sends_cache_control(self, s3_store):
        with Stubber(s3_store._s3_client) as stubber:
            stubber.add_response("put_object", {}, {
                "Bucket": "farm",
                "Key": "optimized/0x0/q82/photos/1-a.png.webp",
                "Body": b"webp",
                "ContentType": "image/webp",
                "CacheControl": "public, max-age=31536000, immutable",
            })

            asyncio.run(s3_store.put(
                "optimized/0x0/q82/photos/1-a.png.webp",
                b"webp",
                "image/webp",
                cache_control="public, max-age=31536000, immutable",
            ))

            stubber.assert_no_pending_responses()

    def test_presigned_put_is_bound_to_key_and_expiry(self, s3_store):
        url = asyncio.run(s3_store.presign_put("photos/1-a.png", "image/png", 900))

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        assert parts.path.endswith("/photos/1-a.png")
        assert query["X-Amz-Expires"] == ["900"]
        assert "content-type" in query["X-Amz-SignedHeaders"][0]


class TestMockObjectStore:

    def test_put_get_head_delete(self):
        store = MockObjectStore()

        asyncio.run(store.put("photos/1-a.png", b"png", "image/png"))

        assert asyncio.run(store.head("photos/1-a.png"))
        assert asyncio.run(store.get("photos/1-a.png")) == b"png"
        asyncio.run(store.delete("photos/1-a.png"))
        assert not asyncio.run(store.head("photos/1-a.png"))

    def test_get_missing(self):
        with pytest.raises(ObjectNotFoundError):
            asyncio.run(MockObjectStore().get("photos/nope.png"))

    def test_failing_keys(self):
        store = MockObjectStore()
        store.failing_keys.add("photos/1-a.png")

        with pytest.raises(StorageUnavailableError):
            asyncio.run(store.delete("photos/1-a.png"))

    def test_public_url_is_percent_encoded(self):
        store = MockObjectStore(public_url_base="https://cdn.example.com")

        assert store.public_url("photos/1-a#b.png") == "https://cdn.example.com/photos/1-a%23b.png"

class TestCreateObjectStore:

    def test_mock_mode(self):
        store = create_object_store(
            config=StorageConfig(bucket_name="", public_url_base="https://cdn.example.com"),
            mock_mode=True,
        )

        assert isinstance(store, MockObjectStore)
        assert store.public_url("photos/1-a.png") == "https://cdn.example.com/photos/1-a.png"

    def test_requires_config(self):
        with pytest.raises(ValueError):
            create_object_store()
