# src/storage/store_factory.py — v1
"""Factory: instantiate the object store from configuration."""

from __future__ import annotations

from manuscript_pipeline.config.settings import Settings
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.storage.local_store import LocalObjectStore


def create_object_store(settings: Settings) -> BaseObjectStore:
    """Create the object store selected by OBJECT_STORE.

    Raises:
        ValueError: If the store type is not supported.
    """
    if settings.object_store == "local":
        return LocalObjectStore(settings.object_store_root)

    if settings.object_store == "s3":
        from manuscript_pipeline.storage.s3_store import S3ObjectStore
        return S3ObjectStore(
            bucket=settings.s3_bucket,
            prefix=settings.s3_prefix,
            region=settings.s3_region or None,
            endpoint_url=settings.s3_endpoint_url or None,
        )

    raise ValueError(f"Unsupported object store: {settings.object_store!r}")
