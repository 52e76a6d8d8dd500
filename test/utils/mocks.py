"""
Mock collaborators for testing failure paths

- Identity provider that can be told to fail on specific users
- Blob storage wrappers that fail on upload, list or remove
"""

from privacyflow.identity import IdentityProviderError, LocalIdentityProvider
from privacyflow.storage import LocalBlobStorage


class MockIdentityProvider(LocalIdentityProvider):
    """Local identity provider that records calls and fails on request"""

    def __init__(self, fail_delete_for: set[str] | None = None, fail_invalidate: bool = False):
        self.fail_delete_for = fail_delete_for or set()
        self.fail_invalidate = fail_invalidate
        self.deleted: list[str] = []
        self.invalidated: list[str] = []

    async def invalidate_sessions(self, user_id: str) -> int:
        self.invalidated.append(user_id)
        if self.fail_invalidate:
            raise ConnectionError("session store unavailable")
        return await super().invalidate_sessions(user_id)

    async def delete_account(self, user_id: str) -> None:
        if user_id in self.fail_delete_for:
            raise IdentityProviderError("Failed to delete user account: upstream identity service error")
        await super().delete_account(user_id)
        self.deleted.append(user_id)


class FailingBlobStorage(LocalBlobStorage):
    """Local storage that raises on the operations named in ``fail_on``"""

    def __init__(self, root, fail_on: set[str]):
        super().__init__(root=root, base_url="http://test/api/v1/storage", secret="test-secret")
        self.fail_on = fail_on

    async def upload(self, path, data, content_type):
        if "upload" in self.fail_on:
            raise OSError("disk full")
        await super().upload(path, data, content_type)

    async def list(self, prefix):
        if "list" in self.fail_on:
            raise OSError("bucket unavailable")
        return await super().list(prefix)

    async def remove(self, paths):
        if "remove" in self.fail_on:
            raise OSError("bucket unavailable")
        await super().remove(paths)
