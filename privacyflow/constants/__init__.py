from .auth import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, REAUTH_TOKEN_TYPE, SECRET_KEY

__all__ = [
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "ALGORITHM",
    "REAUTH_TOKEN_TYPE",
    "SECRET_KEY",
]
