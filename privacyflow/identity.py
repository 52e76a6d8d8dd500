"""
Identity Provider

The privacy engine consumes identity through this narrow interface:
look up a user, check a credential without opening a new login, drop every
login session of a user, and remove the account record itself.
"""

import logging
from typing import Protocol

from passlib.context import CryptContext
from sqlalchemy import delete, select

from privacyflow import database
from privacyflow.models.user import User
from privacyflow.utils.session import get_session_manager

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class IdentityProviderError(Exception):
    """Raised when the identity provider cannot complete an operation"""


class IdentityProvider(Protocol):
    async def get_user(self, user_id: str) -> User | None: ...

    async def verify_credential(self, email: str, secret: str) -> bool: ...

    async def invalidate_sessions(self, user_id: str) -> int: ...

    async def delete_account(self, user_id: str) -> None: ...


class LocalIdentityProvider:
    """Identity backed by the ``users`` table and the login session manager."""

    async def get_user(self, user_id: str) -> User | None:
        async with database.AsyncSessionLocal() as session:
            return await session.get(User, user_id)

    async def verify_credential(self, email: str, secret: str) -> bool:
        async with database.AsyncSessionLocal() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalars().first()

        if user is None:
            return False
        return verify_password(secret, user.hashed_password)

    async def invalidate_sessions(self, user_id: str) -> int:
        manager = await get_session_manager()
        return await manager.delete_all_user_sessions(user_id)

    async def delete_account(self, user_id: str) -> None:
        """Remove the account record. Raises if nothing was removed."""
        try:
            async with database.AsyncSessionLocal() as session:
                result = await session.execute(delete(User).where(User.id == user_id))
                await session.commit()
        except Exception as e:
            raise IdentityProviderError(f"Failed to delete user account: {e}") from e

        if result.rowcount == 0:
            raise IdentityProviderError("Failed to delete user account: user not found")

        logger.info(f"Identity record removed for user {user_id}")


_identity_provider = LocalIdentityProvider()


def get_identity_provider() -> IdentityProvider:
    return _identity_provider
