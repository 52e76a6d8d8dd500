"""
Re-authentication Gate

Sensitive actions (export request, deletion request, deletion confirm)
require proof that the user re-entered their credential recently. The proof
is a signed token carrying only the subject and the issuance time; the
server recomputes validity from that time on every check and never trusts a
client-side claim that the token is still valid.

A token is fresh while ``now - issued_at < window``. At exactly the window
boundary it is rejected. Tokens are never extended: each new window needs a
new credential check.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from jose import JWTError, jwt

from privacyflow.config import settings
from privacyflow.constants.auth import ALGORITHM, REAUTH_TOKEN_TYPE, SECRET_KEY
from privacyflow.exceptions import ReauthRequiredError, UnauthenticatedError
from privacyflow.identity import IdentityProvider
from privacyflow.models.user import User
from privacyflow.services.audit_service import log_reauth
from privacyflow.utils.clock import as_naive_utc, from_epoch, to_epoch, utcnow

logger = logging.getLogger(__name__)


def reauth_window() -> timedelta:
    return timedelta(minutes=settings.reauth_window_minutes)


@dataclass(frozen=True)
class ReauthToken:
    """Opaque re-auth marker handed to the client and threaded back on sensitive calls."""

    value: str
    user_id: str
    issued_at: datetime

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + reauth_window()

    def __str__(self) -> str:
        return self.value


def issue_reauth_token(user_id: str, now: datetime | None = None) -> ReauthToken:
    """Issue a token bound to the user and the current time."""
    issued_at = from_epoch(to_epoch(now or utcnow()))
    claims = {
        "sub": user_id,
        "typ": REAUTH_TOKEN_TYPE,
        "iat": to_epoch(issued_at),
        "jti": str(uuid.uuid4()),
    }
    value = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    return ReauthToken(value=value, user_id=user_id, issued_at=issued_at)


async def verify_credential(
    user: User,
    secret: str,
    identity: IdentityProvider,
    method: str = "password",
) -> bool:
    """
    Check the user's credential without creating a new login session.
    Every attempt is audited, successful or not.
    """
    try:
        is_valid = await identity.verify_credential(user.email, secret)
    except Exception as e:
        logger.error(f"Credential verification error for user {user.id}: {e}")
        is_valid = False

    if not is_valid:
        logger.warning(f"Re-authentication failed for user {user.id}")
    await log_reauth(user.id, is_valid, method)
    return is_valid


async def reauthenticate(
    user: User,
    secret: str,
    identity: IdentityProvider,
    now: datetime | None = None,
) -> ReauthToken:
    """Verify the credential and issue a fresh re-auth token."""
    if not await verify_credential(user, secret, identity):
        raise UnauthenticatedError("Invalid password")
    return issue_reauth_token(user.id, now=now)


def require_fresh_auth(
    user_id: str | None,
    token: ReauthToken | str | None,
    now: datetime | None = None,
) -> str:
    """
    Precondition for sensitive operations.

    Returns:
        The user id the token was issued to

    Raises:
        UnauthenticatedError: no current user
        ReauthRequiredError: token missing, forged, for another user, or stale
    """
    if not user_id:
        raise UnauthenticatedError()

    if token is None or token == "":
        raise ReauthRequiredError()

    raw = token.value if isinstance(token, ReauthToken) else token
    try:
        claims = jwt.decode(raw, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected re-auth token for user {user_id}: {e}")
        raise ReauthRequiredError()

    if claims.get("typ") != REAUTH_TOKEN_TYPE or claims.get("sub") != user_id:
        logger.warning(f"Re-auth token does not belong to user {user_id}")
        raise ReauthRequiredError()

    issued_at_epoch = claims.get("iat")
    if not isinstance(issued_at_epoch, (int, float)):
        raise ReauthRequiredError()

    age = as_naive_utc(now or utcnow()) - from_epoch(issued_at_epoch)
    if age >= reauth_window():
        logger.info(f"Re-auth token for user {user_id} is stale ({int(age.total_seconds())}s old)")
        raise ReauthRequiredError()

    return user_id
