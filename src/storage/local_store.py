# src/storage/local_store.py — v1
"""Local filesystem object store (default backend, also used in tests).

Objects live at ``{root}/{key}``; custom metadata is kept in a JSON
sidecar under ``{root}/.meta/``. Writes go to a temp file and are renamed
into place so readers never observe a partial blob.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from manuscript_pipeline.core.errors import ObjectStoreUnavailable
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.storage.models import ObjectInfo

_META_DIR = ".meta"


class LocalObjectStore(BaseObjectStore):
    """Store objects on the local filesystem."""

    def __init__(self, base_path: str | Path) -> None:
        self._base = Path(base_path).expanduser()
        self._base.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        """Map a key to a path below base_path, rejecting traversal."""
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts or parts[0] == _META_DIR:
            raise ValueError(f"Invalid object key: {key!r}")
        return self._base.joinpath(*parts)

    def _meta_path(self, key: str) -> Path:
        return self._base / _META_DIR / f"{key}.json"

    async def put(
        self, key: str, content: bytes | str, metadata: dict[str, str] | None = None
    ) -> None:
        path = self._resolve(key)
        body = content.encode("utf-8") if isinstance(content, str) else content
        try:
            _atomic_write(path, body)
            meta_path = self._meta_path(key)
            if metadata:
                _atomic_write(meta_path, json.dumps(metadata).encode("utf-8"))
            elif meta_path.exists():
                meta_path.unlink()
        except OSError as exc:
            raise ObjectStoreUnavailable(f"could not write object {key}") from exc

    async def get(self, key: str) -> bytes | None:
        path = self._resolve(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ObjectStoreUnavailable(f"could not read object {key}") from exc

    async def head(self, key: str) -> ObjectInfo | None:
        path = self._resolve(key)
        if not path.is_file():
            return None
        return self._info(key, path)

    async def list(self, prefix: str, limit: int = 1000) -> list[ObjectInfo]:
        results: list[ObjectInfo] = []
        for path in sorted(p for p in self._base.rglob("*") if p.is_file()):
            rel = path.relative_to(self._base).as_posix()
            if rel.startswith(f"{_META_DIR}/") or path.name.startswith(".tmp-"):
                continue
            if rel.startswith(prefix):
                results.append(self._info(rel, path))
                if len(results) >= limit:
                    break
        return results

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        path.unlink(missing_ok=True)
        self._meta_path(key).unlink(missing_ok=True)

    def _info(self, key: str, path: Path) -> ObjectInfo:
        stat = path.stat()
        meta_path = self._meta_path(key)
        metadata = json.loads(meta_path.read_text("utf-8")) if meta_path.exists() else {}
        return ObjectInfo(
            key=key,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            metadata=metadata,
        )


def _atomic_write(path: Path, body: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(body)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
