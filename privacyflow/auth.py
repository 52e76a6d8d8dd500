from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.constants.auth import ACCESS_TOKEN_EXPIRE_MINUTES, ACCESS_TOKEN_TYPE, ALGORITHM, SECRET_KEY
from privacyflow.database import get_db
from privacyflow.exceptions import AccountPendingDeletionError, UnauthenticatedError
from privacyflow.models.user import User
from privacyflow.services.settings_service import is_pending_deletion
from privacyflow.utils.clock import utcnow
from privacyflow.utils.session import get_session_manager
import logging

# Initialize logging
logger = logging.getLogger(__name__)

# OAuth2 scheme for token validation
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


# Function to create an access token bound to a login session
def create_access_token(user_id: str, session_id: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "sid": session_id, "typ": ACCESS_TOKEN_TYPE, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# Function to decode an access token into its claims
def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.warning("Access token expired")
        raise UnauthenticatedError("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        raise UnauthenticatedError("Invalid token")

    if payload.get("typ") != ACCESS_TOKEN_TYPE or not payload.get("sub") or not payload.get("sid"):
        logger.warning("Token is missing required claims")
        raise UnauthenticatedError("Invalid token")
    return payload


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the authenticated user from the bearer token.

    The token must reference a live login session; sessions dropped by
    logout or by a deletion request stop authenticating immediately.
    """
    if not token:
        raise UnauthenticatedError()

    payload = decode_access_token(token)

    manager = await get_session_manager()
    session_data = await manager.get_session(payload["sid"])
    if not session_data or session_data.get("user_id") != payload["sub"]:
        logger.warning(f"Session {payload['sid']} is no longer active")
        raise UnauthenticatedError("Session is no longer active")

    user = await db.get(User, payload["sub"])
    if user is None:
        raise UnauthenticatedError()
    return user


async def get_active_user(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticated user whose account is not pending deletion. Checked on every request."""
    if await is_pending_deletion(user.id, db):
        logger.warning(f"Blocked request from user {user.id}: account pending deletion")
        raise AccountPendingDeletionError()
    return user


def get_reauth_token(x_reauth_token: Optional[str] = Header(None, alias="X-Reauth-Token")) -> Optional[str]:
    """Re-auth token threaded back by the client on sensitive actions."""
    return x_reauth_token or None
