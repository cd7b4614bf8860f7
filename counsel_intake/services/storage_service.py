# counsel_intake/services/storage_service.py
"""
Durable storage for uploaded intake documents.

STORAGE_BACKEND=local writes under LOCAL_STORAGE_PATH and serves files from
PUBLIC_UPLOAD_BASE_URL; STORAGE_BACKEND=s3 uses boto3 (S3-compatible
endpoints supported through S3_ENDPOINT_URL).
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from counsel_intake.core.config import settings
from counsel_intake.core.errors import UpstreamServiceError

logger = logging.getLogger("intake.storage")

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredObject:
    url: str
    identifier: str


def safe_filename(name: str) -> str:
    base = os.path.basename(name or "") or "document"
    return _SAFE_NAME.sub("_", base)[:200]


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def get_s3_client() -> BaseClient:
    return boto3.client(
        "s3",
        region_name=settings.s3_region or None,
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        endpoint_url=_normalize_endpoint(settings.s3_endpoint_url),
    )


def _s3_url(key: str) -> str:
    endpoint = _normalize_endpoint(settings.s3_endpoint_url)
    if endpoint:
        return f"{endpoint}/{settings.s3_bucket}/{key}"
    return f"https://{settings.s3_bucket}.s3.{settings.s3_region}.amazonaws.com/{key}"


def _store_s3(data: bytes, key: str, content_type: str) -> StoredObject:
    try:
        get_s3_client().put_object(
            Bucket=settings.s3_bucket,
            Key=key,
            Body=data,
            ContentType=content_type or "application/octet-stream",
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("S3 upload failed key=%s: %r", key, e)
        raise UpstreamServiceError("Document storage failed") from e
    return StoredObject(url=_s3_url(key), identifier=key)


def _store_local(data: bytes, key: str) -> StoredObject:
    root = Path(settings.local_storage_path)
    path = (root / key).resolve()
    if root.resolve() not in path.parents:
        raise UpstreamServiceError("Invalid storage key")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        logger.error("Local upload failed key=%s: %r", key, e)
        raise UpstreamServiceError("Document storage failed") from e
    base = settings.public_upload_base_url.rstrip("/")
    return StoredObject(url=f"{base}/{key}", identifier=key)


def store(data: bytes, key: str, content_type: str = "") -> StoredObject:
    """Persist one file; raises UpstreamServiceError on provider failure."""
    if settings.storage_backend == "s3":
        obj = _store_s3(data, key, content_type)
    else:
        obj = _store_local(data, key)
    logger.info("Stored %d bytes backend=%s key=%s", len(data), settings.storage_backend, key)
    return obj
