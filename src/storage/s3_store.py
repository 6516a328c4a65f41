# src/storage/s3_store.py — v1
"""S3-compatible object store (OBJECT_STORE=s3).

Supports AWS S3, Backblaze B2, MinIO and other S3-compatible storage.
Requires 'boto3' package: pip install boto3. boto3 is synchronous, so each
call runs in a worker thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from manuscript_pipeline.core.errors import ObjectStoreUnavailable
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.storage.models import ObjectInfo

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3ObjectStore(BaseObjectStore):
    """Blob storage on S3-compatible object storage."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        """Initialize S3 store.

        Args:
            bucket: Bucket name.
            prefix: Key prefix for all objects.
            region: Region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for B2/MinIO/compatible storage.
            client: Pre-built boto3 client (tests).
        """
        if client is None:
            try:
                import boto3
            except ImportError as e:
                raise ImportError(
                    "boto3 package required for S3 object store: pip install boto3"
                ) from e

            kwargs: dict = {}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)

        self._s3 = client
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _call(self, op: str, key: str, **params: Any) -> Any:
        """Run one boto3 operation; None for not-found, typed error otherwise."""
        try:
            return await asyncio.to_thread(getattr(self._s3, op), Bucket=self._bucket, **params)
        except Exception as exc:
            if _is_not_found(exc):
                return None
            logger.error("S3 %s failed for %s: %s", op, key, exc)
            raise ObjectStoreUnavailable(f"object store {op} failed for {key}") from exc

    async def put(
        self, key: str, content: bytes | str, metadata: dict[str, str] | None = None
    ) -> None:
        body = content.encode("utf-8") if isinstance(content, str) else content
        params: dict[str, Any] = {"Key": self._full_key(key), "Body": body}
        if metadata:
            params["Metadata"] = {k.lower(): str(v) for k, v in metadata.items()}
        await self._call("put_object", key, **params)
        logger.debug("S3 put: s3://%s/%s (%d bytes)", self._bucket, params["Key"], len(body))

    async def get(self, key: str) -> bytes | None:
        response = await self._call("get_object", key, Key=self._full_key(key))
        if response is None:
            return None
        return response["Body"].read()

    async def head(self, key: str) -> ObjectInfo | None:
        response = await self._call("head_object", key, Key=self._full_key(key))
        if response is None:
            return None
        return ObjectInfo(
            key=key,
            size=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
            metadata=dict(response.get("Metadata") or {}),
        )

    async def list(self, prefix: str, limit: int = 1000) -> list[ObjectInfo]:
        """List objects under a prefix, following continuation tokens."""
        results: list[ObjectInfo] = []
        params: dict[str, Any] = {
            "Prefix": self._full_key(prefix),
            "MaxKeys": min(limit, 1000),
        }
        while len(results) < limit:
            response = await self._call("list_objects_v2", prefix, **params)
            for obj in (response or {}).get("Contents", []):
                results.append(
                    ObjectInfo(
                        key=obj["Key"][len(self._prefix):],
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    )
                )
            if not response or not response.get("IsTruncated"):
                break
            params["ContinuationToken"] = response["NextContinuationToken"]
        return results[:limit]

    async def delete(self, key: str) -> None:
        await self._call("delete_object", key, Key=self._full_key(key))

    def close(self) -> None:
        close = getattr(self._s3, "close", None)
        if callable(close):
            close()


def _is_not_found(exc: Exception) -> bool:
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return False
    code = str(response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES
