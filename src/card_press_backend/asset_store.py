"""
S3-backed asset store for staging images the editing service must fetch.

This module provides functionality for:
- Uploading local files (signatures, stock photos) under a unique key
- Generating long-lived shareable links for uploaded assets
- Generating short-lived presigned GET links for stored objects
- Generating presigned PUT targets the editing service writes its output to

The bucket name is configured via the S3_BUCKET_NAME environment variable.
boto3 calls are blocking; async callers wrap them in ``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Dict, Optional
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from omegaconf import DictConfig

from .errors import AssetStoreError
from .utils import sanitize_filename

logger = logging.getLogger(__name__)

# SigV4 presigned URLs cannot outlive seven days
MAX_PRESIGN_SECONDS = 7 * 24 * 3600


class S3AssetStore:
    """
    Asset store on a single S3 bucket.

    Attributes:
        bucket: Target bucket name
        prefix: Key prefix every object is stored under
        expiration: Lifetime in seconds of temporary links and upload targets
    """

    def __init__(self, bucket: str, prefix: str = "", expiration: int = 3600, client=None) -> None:
        self.bucket = bucket
        self.prefix = prefix
        self.expiration = expiration
        self._client = client
        self._shared_links: Dict[str, str] = {}
        self._links_lock = Lock()

    @classmethod
    def from_config(cls, config: DictConfig, client=None) -> "S3AssetStore":
        return cls(
            bucket=config.storage.bucket,
            prefix=config.storage.prefix,
            expiration=config.storage.link_expiration_seconds,
            client=client,
        )

    def _get_client(self):
        """
        Get or create the S3 client.

        Raises:
            AssetStoreError: If the bucket is not configured or the client cannot be built
        """
        if not self.bucket:
            raise AssetStoreError("S3_BUCKET_NAME not configured")
        if self._client is None:
            try:
                self._client = boto3.client("s3")
            except BotoCoreError as exc:
                logger.error(f"Failed to create S3 client: {exc}")
                raise AssetStoreError("Failed to create S3 client", {"error": str(exc)}) from exc
        return self._client

    def is_configured(self) -> bool:
        return bool(self.bucket)

    def key_for(self, *parts: str) -> str:
        return self.prefix + "/".join(part.strip("/") for part in parts)

    def upload(self, local_path: Path) -> str:
        """
        Upload a local file under a fresh key.

        Args:
            local_path: File to upload

        Returns:
            The object key, used as the asset handle

        Raises:
            AssetStoreError: If the upload fails
        """
        key = self.key_for("uploads", uuid4().hex, sanitize_filename(local_path.name, default_suffix=local_path.suffix))
        client = self._get_client()
        try:
            logger.info(f"Uploading {local_path} to s3://{self.bucket}/{key}")
            client.upload_file(str(local_path), self.bucket, key)
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"S3 upload failed: {exc}")
            raise AssetStoreError("S3 upload failed", {"key": key, "error": str(exc)}) from exc
        return key

    def _presign(self, method: str, key: str, expiration: int) -> str:
        client = self._get_client()
        try:
            return client.generate_presigned_url(
                method,
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expiration,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"Failed to generate presigned URL for {key}: {exc}")
            raise AssetStoreError("Failed to generate presigned URL", {"key": key, "error": str(exc)}) from exc

    def get_shareable_link(self, handle: str) -> str:
        """
        Return the shareable link for an uploaded asset.

        Asking again for the same handle returns the link created the first
        time instead of minting a new one.
        """
        with self._links_lock:
            existing = self._shared_links.get(handle)
            if existing is not None:
                logger.debug(f"Shareable link already exists for {handle}")
                return existing
            url = self._presign("get_object", handle, MAX_PRESIGN_SECONDS)
            self._shared_links[handle] = url
            return url

    def get_temporary_link(self, stored_path: str, expiration: Optional[int] = None) -> str:
        url = self._presign("get_object", stored_path, expiration or self.expiration)
        logger.info(f"Generated temporary link for {stored_path}")
        return url

    def get_temporary_upload_target(self, stored_path: str, expiration: Optional[int] = None) -> str:
        url = self._presign("put_object", stored_path, expiration or self.expiration)
        logger.info(f"Generated upload target for {stored_path}")
        return url
