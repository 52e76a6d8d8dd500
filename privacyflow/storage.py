"""
Blob Storage for Data Exports

Export artifacts live in private blob storage and are only ever handed out
through time-boxed signed URLs. The engine talks to storage through the
``BlobStorage`` interface; ``LocalBlobStorage`` keeps files on disk and signs
URLs with HMAC-SHA256.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote, urlencode

from privacyflow.config import settings
from privacyflow.exceptions import StorageError
from privacyflow.utils.clock import as_naive_utc, from_epoch, to_epoch, utcnow

logger = logging.getLogger(__name__)

EXPORTS_PREFIX = "exports"
EXPORT_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class BlobEntry:
    name: str
    size: int


class BlobStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str) -> None: ...

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str: ...

    async def remove(self, paths: list[str]) -> None: ...

    async def list(self, prefix: str) -> list[BlobEntry]: ...


class LocalBlobStorage:
    """Blob storage on the local filesystem with HMAC-signed download URLs."""

    def __init__(self, root: str | Path, base_url: str, secret: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self._secret = secret
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise StorageError(f"Invalid storage path: {path}")
        return target

    def _sign(self, path: str, expires: int) -> str:
        return hmac.new(
            self._secret.encode(),
            f"{path}:{expires}".encode(),
            hashlib.sha256,
        ).hexdigest()

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Replace if exists
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to upload {path}: {e}")
            raise StorageError(f"Storage upload failed: {e.strerror or e}") from e
        logger.info(f"Stored {len(data)} bytes at {path} ({content_type})")

    async def create_signed_url(self, path: str, ttl_seconds: int, now: datetime | None = None) -> str:
        if not self._resolve(path).is_file():
            raise StorageError("Failed to generate download URL: object not found")

        expires = to_epoch(now or utcnow()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(path, expires)})
        return f"{self.base_url}/{quote(path)}?{query}"

    def verify_signed_path(self, path: str, expires: int, signature: str, now: datetime | None = None) -> bool:
        """Check a signature produced by ``create_signed_url`` and that it has not expired."""
        if as_naive_utc(now or utcnow()) > from_epoch(expires):
            return False
        return hmac.compare_digest(self._sign(path, expires), signature)

    def open_path(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError("Object not found")
        return target

    async def remove(self, paths: list[str]) -> None:
        for path in paths:
            try:
                self._resolve(path).unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to delete {path}: {e}")
                raise StorageError(f"Storage delete failed: {e.strerror or e}") from e

    async def list(self, prefix: str) -> list[BlobEntry]:
        folder = self._resolve(prefix)
        if not folder.is_dir():
            return []
        return [BlobEntry(name=p.name, size=p.stat().st_size) for p in sorted(folder.iterdir()) if p.is_file()]


_blob_storage: BlobStorage | None = None


def get_blob_storage() -> BlobStorage:
    """Dependency returning the configured blob storage."""
    global _blob_storage
    if _blob_storage is None:
        _blob_storage = LocalBlobStorage(
            root=settings.storage_root,
            base_url=settings.storage_base_url,
            secret=settings.secret_key,
        )
    return _blob_storage


# ============== Export helpers ==============


def export_folder(user_id: str) -> str:
    return f"{EXPORTS_PREFIX}/{user_id}"


def export_path(user_id: str, export_id: str) -> str:
    """Exports are namespaced by user and request: exports/{user_id}/{export_id}.json"""
    return f"{export_folder(user_id)}/{export_id}.json"


async def upload_export_data(storage: BlobStorage, user_id: str, export_id: str, data: dict[str, Any]) -> str:
    """Serialize an export and upload it. Returns the storage path."""
    path = export_path(user_id, export_id)
    payload = json.dumps(data, indent=2, default=str).encode("utf-8")
    await storage.upload(path, payload, EXPORT_CONTENT_TYPE)
    return path


async def get_export_download_url(storage: BlobStorage, file_path: str, ttl_seconds: int | None = None) -> str:
    return await storage.create_signed_url(file_path, ttl_seconds or settings.signed_url_ttl_seconds)


async def delete_export_file(storage: BlobStorage, file_path: str) -> None:
    await storage.remove([file_path])


async def delete_all_user_exports(storage: BlobStorage, user_id: str) -> int:
    """Remove every export artifact stored for a user. Returns the number removed."""
    folder = export_folder(user_id)
    entries = await storage.list(folder)
    if not entries:
        return 0
    await storage.remove([f"{folder}/{entry.name}" for entry in entries])
    return len(entries)


def export_expiry(now: datetime) -> datetime:
    return now + timedelta(hours=settings.export_ttl_hours)
