"""Cloudflare R2 object store for originals and processed variants.

Originals are uploaded by the browser through pre-signed URLs; this
module only reads them back and writes the derived WebP files.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from fotowinnow.config import Settings

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}

_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|webp)$", re.IGNORECASE)


class ObjectNotFound(Exception):
    """The requested key does not exist in the bucket."""


@dataclass(frozen=True)
class StoredObject:
    data: bytes
    content_type: Optional[str] = None


def variant_keys(source_key: str) -> tuple[str, str]:
    """Derive fresh keys for the optimized and watermarked variants.

    ``albums/7/user_1/IMG_1.jpg`` becomes
    ``albums/7/user_1/optimized_<uuid>.webp`` and
    ``albums/7/user_1/watermarked_<uuid>.webp``.
    """
    base = source_key.rsplit("/", 1)[0] if "/" in source_key else ""
    prefix = f"{base}/" if base else ""
    return (
        f"{prefix}optimized_{uuid4()}.webp",
        f"{prefix}watermarked_{uuid4()}.webp",
    )


def _variant_path(storage_path: str, suffix: str) -> str:
    stem = _EXTENSION_RE.sub("", storage_path)
    return f"{stem}_{suffix}.webp"


def watermarked_path(storage_path: str) -> str:
    """``photos/a.jpg`` -> ``photos/a_watermarked.webp`` (batch job naming)."""
    return _variant_path(storage_path, "watermarked")


def optimized_path(storage_path: str) -> str:
    """``photos/a.jpg`` -> ``photos/a_optimized.webp``."""
    return _variant_path(storage_path, "optimized")


class R2ObjectStore:
    """Thin boto3 wrapper over one R2 bucket."""

    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        self.bucket = settings.r2_bucket_name
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        """Create boto3 S3 client configured for Cloudflare R2."""
        cfg = self.settings
        if not cfg.has_r2_config():
            raise RuntimeError(
                "R2 credentials not configured. "
                "Set R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY in .env"
            )

        endpoint = cfg.r2_endpoint or f"https://{cfg.r2_account_id}.r2.cloudflarestorage.com"

        return boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=cfg.r2_access_key_id,
            aws_secret_access_key=cfg.r2_secret_access_key,
            config=BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 2, "mode": "standard"},
            ),
            region_name="auto",
        )

    def public_url(self, key: str) -> str:
        return f"{self.settings.r2_public_url.rstrip('/')}/{key}"

    def get(self, key: str) -> StoredObject:
        """Download an object.

        Raises:
            ObjectNotFound: If the key does not exist.
        """
        logger.debug("Fetching r2://%s/%s", self.bucket, key)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                raise ObjectNotFound(key) from e
            raise

        body = response.get("Body")
        if body is None:
            raise ObjectNotFound(key)
        return StoredObject(data=body.read(), content_type=response.get("ContentType"))

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Upload ``data`` under ``key`` and return its URL."""
        logger.info("Uploading %d bytes -> r2://%s/%s", len(data), self.bucket, key)
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata=metadata or {},
        )
        return self.public_url(key)

    def delete(self, key: str) -> bool:
        """Delete a file from R2.

        Returns:
            True if deleted, False on error.
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info("Deleted from R2: %s", key)
            return True
        except ClientError as e:
            logger.error("Failed to delete %s from R2: %s", key, e)
            return False
