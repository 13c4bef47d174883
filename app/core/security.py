"""
Token and password primitives for the identity module.

Access tokens are HS256 JWTs signed with JWT_SECRET_KEY:

    {"sub": "<user id>", "email": "...", "type": "access", "iat": ..., "exp": ...}

Upload tokens use the same key with ``type="upload"`` and a short expiry so
a signed upload URL cannot be replayed as an access token (and vice versa).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from app.config import settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
UPLOAD_TOKEN_TYPE = "upload"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.PASSWORD_HASH_ROUNDS,
)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


class AccessToken(BaseModel):
    """
    Decoded access token payload.

    Attributes:
        user_id (str): User id from the 'sub' claim
        email (Optional[str]): Email the token was issued for
        issued_at (datetime): Token issuance time
        expires_at (datetime): Token expiration time
    """
    user_id: str
    email: Optional[str] = None
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_jwt_payload(cls, payload: dict) -> "AccessToken":
        """Create AccessToken from a decoded JWT payload."""
        return cls(
            user_id=payload["sub"],
            email=payload.get("email"),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else datetime.now(tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        )


def _encode(claims: dict, token_type: str, expires_in: timedelta) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        **claims,
        "type": token_type,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, expected_type: str) -> dict:
    """
    Decode and validate a JWT string.

    Raises:
        jwt.ExpiredSignatureError: If token is expired.
        jwt.InvalidTokenError: If token is invalid or of the wrong type.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        options={
            "verify_exp": True,
            "verify_iat": True,
            "verify_signature": True,
            "require": ["sub", "exp"],
        }
    )

    if payload.get("type") != expected_type:
        logger.warning(
            "invalid_token_type",
            token_type=payload.get("type"),
            expected=expected_type
        )
        raise jwt.InvalidTokenError("Invalid token type")

    return payload


def create_access_token(user_id: str, email: Optional[str] = None) -> str:
    """Issue an access token for a user."""
    claims = {"sub": user_id}
    if email:
        claims["email"] = email
    return _encode(
        claims,
        ACCESS_TOKEN_TYPE,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def decode_access_token(token: str) -> AccessToken:
    """
    Decode an access token.

    Raises:
        jwt.InvalidTokenError: If token is invalid, expired, or wrong type.
    """
    return AccessToken.from_jwt_payload(_decode(token, ACCESS_TOKEN_TYPE))


def create_upload_token(user_id: str) -> str:
    """Issue a short-lived token authorizing a single blob upload."""
    return _encode(
        {"sub": user_id},
        UPLOAD_TOKEN_TYPE,
        timedelta(seconds=settings.UPLOAD_URL_EXPIRE_SECONDS),
    )


def decode_upload_token(token: str) -> str:
    """
    Validate an upload token and return the uploading user's id.

    Raises:
        jwt.InvalidTokenError: If token is invalid, expired, or wrong type.
    """
    return _decode(token, UPLOAD_TOKEN_TYPE)["sub"]
