from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import create_access_token, decode_access_token, get_current_user, oauth2_scheme
from ..constants import ACCESS_TOKEN_EXPIRE_MINUTES
from ..database import get_db
from ..identity import IdentityProvider, get_identity_provider, hash_password, verify_password
from ..middleware.rate_limit import LOGIN_LIMIT, REAUTH_LIMIT, limiter
from ..models import User
from ..schemas import ReauthRequest, ReauthResponse, Token, UserCreate, UserResponse
from ..services.reauth_service import reauthenticate
from ..utils.session import get_session_manager
import logging

# Initialize logger
logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == user_in.email))
    if result.scalars().first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(email=user_in.email, hashed_password=hash_password(user_in.password))
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    logger.info(f"Registered user {user.id}")
    return user


@router.post("/token", response_model=Token)
@limiter.limit(LOGIN_LIMIT)
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """
    Endpoint to generate an access token for authenticated users.

    Every token is bound to a server-side session so it can be revoked.
    """
    result = await db.execute(select(User).where(User.email == form_data.username))
    user = result.scalars().first()

    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Login failed for email: {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    manager = await get_session_manager()
    session_id = await manager.create_session(user.id, user.email)
    access_token = create_access_token(user.id, session_id)
    logger.info(f"Access token created for user: {user.id}")

    return {"access_token": access_token, "token_type": "Bearer", "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
):
    payload = decode_access_token(token)
    manager = await get_session_manager()
    await manager.delete_session(payload["sid"])
    logger.info(f"User {current_user.id} logged out")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reauth", response_model=ReauthResponse)
@limiter.limit(REAUTH_LIMIT)
async def reauth(
    request: Request,
    response: Response,
    body: ReauthRequest,
    current_user: User = Depends(get_current_user),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """
    Re-enter the password to unlock sensitive actions for a few minutes.

    Does not create a new login session.
    """
    token = await reauthenticate(current_user, body.password, identity)
    return ReauthResponse(reauth_token=token.value, expires_at=token.expires_at)
