"""Async key-value store for inspection image assets.

Image bytes (originals and `<id>_annotated` variants) are written as files
under `<DATABASE_DIR>/assets/` with `aiofiles`; JSON metadata
(`{comment, annotations, name}`) lives in the `ASSET_METADATA` SQLite table.
Both are reached through `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiofiles
import aiofiles.os

from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)

ANNOTATED_SUFFIX = "_annotated"
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_ASSET_EXT = ".bin"


class InvalidKeyError(ValueError):
    """Raised when a storage key contains characters outside `[A-Za-z0-9_-]`."""


class AssetNotFoundError(LookupError):
    """Raised when an operation requires an asset that has not been stored (yet)."""


def annotated_key(image_id: str) -> str:
    """Return the storage key of the annotated variant of `image_id`."""
    return f"{image_id}{ANNOTATED_SUFFIX}"


def validate_key(key: str) -> str:
    """Check `key` is an image id or the annotated key derived from one."""
    if not isinstance(key, str):
        raise InvalidKeyError(f"Invalid asset key: {key!r}")
    base = key[: -len(ANNOTATED_SUFFIX)] if key.endswith(ANNOTATED_SUFFIX) else key
    if not (_KEY_PATTERN.match(key) or _KEY_PATTERN.match(base)):
        raise InvalidKeyError(f"Invalid asset key: {key!r}")
    return key


class AssetStore:
    """Put/get/delete image bytes and metadata by key.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing `assets_dir` and an async `connection()` context manager that
    yields an `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    def _path(self, key: str) -> Path:
        return Path(self._db.assets_dir) / f"{validate_key(key)}{_ASSET_EXT}"

    # Bytes

    async def put(self, key: str, data: bytes) -> None:
        """Store `data` under `key`, replacing any previous value."""
        if not data:
            raise ValueError("Asset bytes are required for saving.")
        path = self._path(key)
        await self._db.ensure_database()
        tmp_path = path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
        await aiofiles.os.replace(tmp_path, path)
        LOGGER.debug("Stored asset %s (%d bytes)", key, len(data))

    async def get(self, key: str) -> Optional[bytes]:
        """Return the bytes stored under `key`, or None when absent."""
        path = self._path(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.exists(self._path(key))

    async def delete(self, key: str) -> bool:
        """Delete the bytes under `key`. Returns False when nothing was stored."""
        try:
            await aiofiles.os.remove(self._path(key))
        except FileNotFoundError:
            return False
        return True

    async def list_keys(self) -> List[str]:
        """Return every stored byte-asset key, sorted."""
        assets_dir = Path(self._db.assets_dir)
        await self._db.ensure_database()
        names = await asyncio.to_thread(lambda: sorted(p.name for p in assets_dir.glob(f"*{_ASSET_EXT}")))
        return [name[: -len(_ASSET_EXT)] for name in names]

    async def put_annotated(self, image_id: str, data: bytes) -> None:
        await self.put(annotated_key(validate_key(image_id)), data)

    async def get_annotated(self, image_id: str) -> Optional[bytes]:
        return await self.get(annotated_key(validate_key(image_id)))

    # Metadata

    async def put_meta(self, key: str, metadata: Dict[str, Any]) -> None:
        """Attach JSON metadata to an already stored image.

        Raises:
            AssetNotFoundError: If no image bytes exist under `key` yet.
        """
        validate_key(key)
        if not await self.exists(key):
            raise AssetNotFoundError(f"Image {key} not found")
        payload = json.dumps(metadata)
        async with self._db.connection() as conn:
            await conn.execute(
                """
                INSERT INTO ASSET_METADATA (asset_key, metadata_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(asset_key) DO UPDATE SET metadata_json = excluded.metadata_json,
                    updated_at = excluded.updated_at
                """,
                (key, payload, int(time.time())),
            )
            await conn.commit()

    async def get_meta(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the metadata for `key`, or None when absent or unreadable."""
        validate_key(key)
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT metadata_json FROM ASSET_METADATA WHERE asset_key = ?", (key,))
            row = await cur.fetchone()
        if not row:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            LOGGER.error("Corrupt metadata stored for %s", key)
            return None

    async def delete_meta(self, key: str) -> bool:
        validate_key(key)
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM ASSET_METADATA WHERE asset_key = ?", (key,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    # Composite operations

    async def delete_image(self, image_id: str) -> Dict[str, bool]:
        """Remove an image, its annotated variant, and its metadata.

        Each deletion is attempted independently; a missing key is not an
        error and a failure on one key does not prevent the others.

        Returns:
            Mapping of `image`, `annotated`, `metadata` to whether something was removed.
        """
        validate_key(image_id)
        steps = (
            ("image", lambda: self.delete(image_id)),
            ("annotated", lambda: self.delete(annotated_key(image_id))),
            ("metadata", lambda: self.delete_meta(image_id)),
        )
        removed: Dict[str, bool] = {}
        for name, step in steps:
            try:
                removed[name] = await step()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.error("Failed to delete %s for %s: %s", name, image_id, exc)
                removed[name] = False
        return removed

    async def delete_all(self) -> Tuple[int, int]:
        """Delete every stored asset and all metadata.

        Returns:
            `(deleted, errors)` counts over byte assets.
        """
        deleted = errors = 0
        for key in await self.list_keys():
            try:
                if await self.delete(key):
                    deleted += 1
            except OSError as exc:
                LOGGER.error("Failed to delete asset %s: %s", key, exc)
                errors += 1

        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM ASSET_METADATA")
            await conn.commit()
        return deleted, errors


async def store_metadata_with_retry(
    store: AssetStore,
    image_id: str,
    metadata: Dict[str, Any],
    *,
    attempts: int = 4,
    base_delay: float = 0.25,
) -> int:
    """Write metadata right after an upload, tolerating storage propagation delay.

    Retries `AssetNotFoundError` with linearly increasing backoff
    (`base_delay * attempt`). Returns the attempt number that succeeded.

    Raises:
        AssetNotFoundError: If the image is still missing after the last attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            await store.put_meta(image_id, metadata)
            return attempt
        except AssetNotFoundError:
            if attempt >= attempts:
                raise
            LOGGER.info("Metadata for %s not writable yet (attempt %d/%d)", image_id, attempt, attempts)
            await asyncio.sleep(base_delay * attempt)
    raise AssetNotFoundError(f"Image {image_id} not found")
