"""Auth helpers - bearer JWT verification.

Sessions are issued by the external auth provider; the backend only verifies
the HS256 access token it signs with the shared SECRET_KEY. `sub` carries the
user's UUID.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt

from infra.utils.validation import is_valid_uuid
from .settings import JWT_ALGORITHM, SECRET_KEY

ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class TokenError(Exception):
    """Raised when a bearer token is present but cannot be trusted."""

    def __init__(self, message: str, expired: bool = False):
        super().__init__(message)
        self.message = message
        self.expired = expired


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> str:
    """Return the user UUID carried by `token` or raise TokenError."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenError("JWT expired", expired=True)
    except JWTError:
        raise TokenError("Invalid JWT")

    sub = payload.get("sub")
    if not is_valid_uuid(sub):
        raise TokenError("Invalid JWT: subject is not a valid user id")
    return sub


def get_user_id_from_authorization_header(authorization: Optional[str]) -> Optional[str]:
    """Trích `user_id` từ header Authorization (Bearer token).

    Dùng cho các endpoint **cho phép anonymous** (guest):
    - Trả về `None` nếu không có header.
    - Raise `TokenError` nếu có token nhưng hết hạn/không hợp lệ, để caller
      trả về 401 thay vì âm thầm coi request là guest.
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise TokenError("Invalid authorization header")

    return decode_access_token(parts[1])


def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Giải mã JWT token và trả về user id hiện tại"""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


__all__ = [
    "TokenError",
    "create_access_token",
    "decode_access_token",
    "get_current_user_id",
    "get_user_id_from_authorization_header",
]
