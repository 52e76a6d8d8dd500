"""
Tests for blob storage and signed URLs
"""

import json
from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from privacyflow.exceptions import StorageError
from privacyflow.storage import (
    delete_all_user_exports,
    export_path,
    get_export_download_url,
    upload_export_data,
)
from privacyflow.utils.clock import to_epoch, utcnow

SIGNED_AT = datetime(2026, 5, 1, 9, 0, 0)


def _query(url: str) -> dict:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


class TestExportFiles:
    """Test export upload and removal"""

    def test_export_path_is_namespaced(self):
        assert export_path("user-1", "export-9") == "exports/user-1/export-9.json"

    @pytest.mark.asyncio
    async def test_upload_writes_json(self, storage):
        path = await upload_export_data(storage, "user-1", "export-9", {"version": "1.0"})

        assert json.loads(storage.open_path(path).read_text()) == {"version": "1.0"}

    @pytest.mark.asyncio
    async def test_upload_replaces_existing(self, storage):
        await upload_export_data(storage, "user-1", "export-9", {"version": "0.9"})
        path = await upload_export_data(storage, "user-1", "export-9", {"version": "1.0"})

        assert json.loads(storage.open_path(path).read_text())["version"] == "1.0"

    @pytest.mark.asyncio
    async def test_delete_all_user_exports(self, storage):
        await upload_export_data(storage, "user-1", "a", {})
        await upload_export_data(storage, "user-1", "b", {})
        await upload_export_data(storage, "user-2", "c", {})

        assert await delete_all_user_exports(storage, "user-1") == 2
        assert await storage.list("exports/user-1") == []
        assert len(await storage.list("exports/user-2")) == 1

    @pytest.mark.asyncio
    async def test_delete_all_with_nothing_stored(self, storage):
        assert await delete_all_user_exports(storage, "nobody") == 0

    @pytest.mark.asyncio
    async def test_path_traversal_is_rejected(self, storage):
        with pytest.raises(StorageError):
            await storage.upload("../outside.json", b"{}", "application/json")


class TestSignedUrls:
    """Test signing and verifying download links"""

    @pytest.mark.asyncio
    async def test_signed_url_verifies_within_ttl(self, storage):
        path = await upload_export_data(storage, "user-1", "export-9", {})

        url = await storage.create_signed_url(path, 3600, now=SIGNED_AT)
        query = _query(url)

        assert int(query["expires"]) == to_epoch(SIGNED_AT) + 3600
        assert storage.verify_signed_path(path, int(query["expires"]), query["signature"], now=SIGNED_AT)

    @pytest.mark.asyncio
    async def test_expired_signature(self, storage):
        path = await upload_export_data(storage, "user-1", "export-9", {})
        query = _query(await storage.create_signed_url(path, 60, now=SIGNED_AT))

        assert not storage.verify_signed_path(
            path, int(query["expires"]), query["signature"], now=SIGNED_AT + timedelta(minutes=2)
        )

    @pytest.mark.asyncio
    async def test_tampered_path_or_expiry(self, storage):
        path = await upload_export_data(storage, "user-1", "export-9", {})
        await upload_export_data(storage, "user-2", "export-1", {})
        query = _query(await storage.create_signed_url(path, 60, now=SIGNED_AT))
        expires, signature = int(query["expires"]), query["signature"]

        assert not storage.verify_signed_path("exports/user-2/export-1.json", expires, signature, now=SIGNED_AT)
        assert not storage.verify_signed_path(path, expires + 3600, signature, now=SIGNED_AT)

    @pytest.mark.asyncio
    async def test_missing_object_cannot_be_signed(self, storage):
        with pytest.raises(StorageError):
            await get_export_download_url(storage, "exports/user-1/missing.json")

    @pytest.mark.asyncio
    async def test_default_ttl_is_one_day(self, storage):
        path = await upload_export_data(storage, "user-1", "export-9", {})

        query = _query(await get_export_download_url(storage, path))

        assert storage.verify_signed_path(path, int(query["expires"]), query["signature"])
        assert not storage.verify_signed_path(
            path, int(query["expires"]), query["signature"], now=utcnow() + timedelta(hours=25)
        )
