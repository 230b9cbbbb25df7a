"""S3-compatible blob storage for certificate artifacts.

Works against AWS S3, Cloudflare R2 or MinIO through boto3. boto3 is
synchronous, so every call is pushed to a worker thread.

All helpers raise ConfigurationError when credentials are missing and
UpstreamStoreError when the store rejects a call.
"""

from __future__ import annotations

import asyncio
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from core.config import get_settings
from core.errors import ConfigurationError, UpstreamStoreError
from core.logger import get_logger

logger = get_logger(__name__)

_s3_client: Any = None

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NoSuchBucket", "NotFound"})

# Regions where CreateBucket must not send a LocationConstraint
_DEFAULT_REGIONS = frozenset({"", "auto", "us-east-1"})


def get_storage_client() -> Any:
    """Return the shared boto3 S3 client, creating it on first use."""
    global _s3_client

    settings = get_settings()
    if not settings.storage_configured:
        raise ConfigurationError(
            "Blob storage requires STORAGE_ACCESS_KEY_ID, "
            "STORAGE_SECRET_ACCESS_KEY and CERTIFICATE_BUCKET"
        )

    if _s3_client is None:
        import boto3
        from botocore.config import Config

        _s3_client = boto3.client(
            "s3",
            endpoint_url=settings.storage_endpoint_url or None,
            aws_access_key_id=settings.storage_access_key_id,
            aws_secret_access_key=settings.storage_secret_access_key,
            region_name=settings.storage_region,
            config=Config(signature_version="s3v4"),
        )
    return _s3_client


def reset_storage_client() -> None:
    global _s3_client
    _s3_client = None


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _store_error(action: str, exc: Exception) -> UpstreamStoreError:
    logger.error("storage.call.failed", action=action, error=str(exc))
    return UpstreamStoreError(str(exc))


async def _call(action: str, method_name: str, **kwargs: Any) -> Any:
    client = get_storage_client()
    method = getattr(client, method_name)
    try:
        return await asyncio.to_thread(method, **kwargs)
    except (ClientError, BotoCoreError) as e:
        raise _store_error(action, e) from e


async def ensure_bucket(bucket: str) -> bool:
    """Create ``bucket`` as a private bucket if it is missing.

    Returns True when the bucket was created by this call.
    """
    client = get_storage_client()
    try:
        await asyncio.to_thread(client.head_bucket, Bucket=bucket)
        return False
    except ClientError as e:
        if _error_code(e) not in _NOT_FOUND_CODES:
            raise _store_error("head_bucket", e) from e
    except BotoCoreError as e:
        raise _store_error("head_bucket", e) from e

    create_kwargs: dict[str, Any] = {"Bucket": bucket, "ACL": "private"}
    region = get_settings().storage_region
    if region not in _DEFAULT_REGIONS:
        create_kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

    try:
        await asyncio.to_thread(client.create_bucket, **create_kwargs)
    except ClientError as e:
        # Lost a race with a concurrent provisioning call
        if _error_code(e) in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
            return False
        raise _store_error("create_bucket", e) from e
    except BotoCoreError as e:
        raise _store_error("create_bucket", e) from e

    logger.info("storage.bucket.created", bucket=bucket)
    return True


async def put_object(bucket: str, key: str, body: bytes, content_type: str) -> None:
    """Upload ``body`` to ``key``, overwriting any existing object."""
    await _call(
        "put_object",
        "put_object",
        Bucket=bucket,
        Key=key,
        Body=body,
        ContentType=content_type,
    )


async def object_exists(bucket: str, key: str) -> bool:
    client = get_storage_client()
    try:
        await asyncio.to_thread(client.head_object, Bucket=bucket, Key=key)
    except ClientError as e:
        if _error_code(e) in _NOT_FOUND_CODES:
            return False
        raise _store_error("head_object", e) from e
    except BotoCoreError as e:
        raise _store_error("head_object", e) from e
    return True


async def create_signed_url(bucket: str, key: str, expires_in: int) -> str:
    """Presigned GET URL for a private object, valid for ``expires_in`` seconds."""
    return await _call(
        "generate_presigned_url",
        "generate_presigned_url",
        ClientMethod="get_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=expires_in,
    )
