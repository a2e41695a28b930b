"""
Object storage client for uploads and derivatives.

Supports Amazon S3 and S3-compatible stores (Cloudflare R2, MinIO) through
boto3, with a mock mode for local development.

Mock mode keeps objects in memory and counts calls per operation, which
is what the tests use to check that a cache hit never fetches the source.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from ...core.media.errors import ObjectNotFoundError, StorageUnavailableError
from ...core.media.protocols import ObjectStore

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    Credentials may be left empty to fall back to boto3's default
    credential chain (environment, instance profile).
    """
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    public_url_base: Optional[str] = None


def build_public_url(
    key: str,
    bucket_name: str,
    region: str = "us-east-1",
    endpoint_url: Optional[str] = None,
    public_url_base: Optional[str] = None,
) -> str:
    """
    Public URL for an object key.

    A configured base (CDN domain) wins. Otherwise custom endpoints use
    path-style URLs and AWS uses the virtual-hosted bucket domain. The key
    is percent-encoded; `/` separators are kept.
    """
    path = quote(key, safe="/")
    if public_url_base:
        return f"{public_url_base.rstrip('/')}/{path}"
    if endpoint_url:
        return f"{endpoint_url.rstrip('/')}/{bucket_name}/{path}"
    if region == "us-east-1":
        return f"https://{bucket_name}.s3.amazonaws.com/{path}"
    return f"https://{bucket_name}.s3.{region}.amazonaws.com/{path}"


class S3ObjectStore:
    """
    S3 / R2 object store.

    boto3 is synchronous, so every call runs in a worker thread via
    asyncio.to_thread. A slow PUT of a large derivative then never stalls
    other requests on the event loop.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize the boto3 client.

        We import boto3 here (not at module level) because mock mode
        doesn't need it.
        """
        import boto3
        from botocore.config import Config

        self._config = config

        # v4 signatures are required by R2 and by presigned PUTs with a
        # content type condition
        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path" if config.endpoint_url else "auto"},
        )

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id or None,
            aws_secret_access_key=config.secret_access_key or None,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 object store",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        params = {
            "Bucket": self._config.bucket_name,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control

        try:
            await asyncio.to_thread(self._s3_client.put_object, **params)
        except Exception as e:
            logger.error(
                "Failed to put object",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailableError(f"Put failed for {key}: {e}")

        logger.debug(
            "Put object",
            extra={"storage_key": key, "size_bytes": len(data)}
        )

    async def get(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_read)
        except Exception as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(f"Object not found: {key}")
            logger.error(
                "Failed to get object",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailableError(f"Get failed for {key}: {e}")

    async def head(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._s3_client.head_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
            return True
        except Exception as e:
            if _is_not_found(e):
                return False
            logger.error(
                "Failed to head object",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailableError(f"Head failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailableError(f"Delete failed for {key}: {e}")

        logger.info("Deleted object", extra={"storage_key": key})

    async def presign_put(self, key: str, content_type: str, expiry_seconds: int) -> str:
        """
        Generate a presigned PUT URL.

        The signature covers bucket, key and Content-Type, so the URL only
        authorizes writing that one object with that type, and S3 rejects
        it once `expiry_seconds` have passed.
        """
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                "put_object",
                Params={
                    "Bucket": self._config.bucket_name,
                    "Key": key,
                    "ContentType": content_type,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"storage_key": key, "error": str(e)}
            )
            raise StorageUnavailableError(f"Presigned URL generation failed: {e}")

    def public_url(self, key: str) -> str:
        return build_public_url(
            key,
            bucket_name=self._config.bucket_name,
            region=self._config.region,
            endpoint_url=self._config.endpoint_url,
            public_url_base=self._config.public_url_base,
        )


def _is_not_found(error: Exception) -> bool:
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return False
    code = str(response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class StoredObject:
    data: bytes
    content_type: str
    cache_control: Optional[str] = None


class MockObjectStore:
    """
    In-memory object store for local development and tests.

    `calls` counts operations by name ("put", "get", "head", "delete",
    "presign_put"). Keys listed in `failing_keys` raise
    StorageUnavailableError on any operation, for exercising failure paths.
    """

    def __init__(self, public_url_base: str = "mock://storage") -> None:
        self.objects: dict[str, StoredObject] = {}
        self.calls: Counter = Counter()
        self.failing_keys: set[str] = set()
        self._public_url_base = public_url_base
        logger.info("Initialized mock object store (in-memory)")

    def _check(self, operation: str, key: str) -> None:
        self.calls[operation] += 1
        if key in self.failing_keys:
            raise StorageUnavailableError(f"Mock failure on {operation} {key}")

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        self._check("put", key)
        self.objects[key] = StoredObject(bytes(data), content_type, cache_control)

    async def get(self, key: str) -> bytes:
        self._check("get", key)
        if key not in self.objects:
            raise ObjectNotFoundError(f"Object not found: {key}")
        return self.objects[key].data

    async def head(self, key: str) -> bool:
        self._check("head", key)
        return key in self.objects

    async def delete(self, key: str) -> None:
        self._check("delete", key)
        self.objects.pop(key, None)

    async def presign_put(self, key: str, content_type: str, expiry_seconds: int) -> str:
        self._check("presign_put", key)
        return (
            f"{self.public_url(key)}?X-Amz-Expires={expiry_seconds}"
            f"&content-type={quote(content_type, safe='')}"
        )

    def public_url(self, key: str) -> str:
        return build_public_url(key, bucket_name="", public_url_base=self._public_url_base)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create an object store based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory store

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        base = config.public_url_base if config and config.public_url_base else "mock://storage"
        return MockObjectStore(public_url_base=base)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStore(config)
