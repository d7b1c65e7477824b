# vidtube/core/security.py
"""
Security module for authentication.
Handles password hashing and creation/validation of the JWT access and refresh tokens.
"""
import uuid
import datetime as dt
import jwt  # PyJWT
from passlib.context import CryptContext

from vidtube.config import settings

# Password hashing context
# Argon2 is a modern, secure password hashing algorithm
pwd_context = CryptContext(
    schemes=["argon2"],  # Use Argon2 for password hashing
    deprecated="auto",   # Automatically handle deprecated schemes
)

# JWT configuration
ACCESS_TOKEN_SECRET = settings.access_token_secret
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes
REFRESH_TOKEN_SECRET = settings.refresh_token_secret
REFRESH_TOKEN_EXPIRE_MINUTES = settings.refresh_token_expire_minutes
JWT_ALG = settings.jwt_algorithm  # HMAC SHA-256

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Args:
        plain: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Args:
        plain: Plain text password to verify
        hashed: Hashed password from database

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain, hashed)


def _encode(claims: dict, secret: str, expire_minutes: int) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        **claims,
        "iat": now,
        "exp": now + dt.timedelta(minutes=expire_minutes),
        "jti": uuid.uuid4().hex,  # Unique per token, two tokens issued in the same second still differ
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALG)


def _decode(token: str, secret: str, token_type: str) -> dict:
    payload = jwt.decode(token, secret, algorithms=[JWT_ALG])
    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"expected a {token_type} token")
    return payload


def create_access_token(user_id: str, username: str, email: str) -> str:
    """
    Create a short-lived JWT access token.

    Token payload includes:
        - sub: Subject (user ID)
        - username, email: identity shown to downstream handlers
        - type: "access"
        - iat / exp: Issued at / expiration timestamps
        - jti: Random token id
    """
    claims = {
        "sub": user_id,
        "username": username,
        "email": email,
        "type": ACCESS_TOKEN_TYPE,
    }
    return _encode(claims, ACCESS_TOKEN_SECRET, ACCESS_TOKEN_EXPIRE_MINUTES)


def create_refresh_token(user_id: str) -> str:
    """
    Create a long-lived JWT refresh token.

    Only the user ID is embedded; the token is also persisted on the user
    record, which is what makes it single-use on rotation.
    """
    claims = {"sub": user_id, "type": REFRESH_TOKEN_TYPE}
    return _encode(claims, REFRESH_TOKEN_SECRET, REFRESH_TOKEN_EXPIRE_MINUTES)


def decode_access_token(token: str) -> dict:
    """
    Decode and validate a JWT access token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid, malformed or not an access token
    """
    return _decode(token, ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict:
    """
    Decode and validate a JWT refresh token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid, malformed or not a refresh token
    """
    return _decode(token, REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TYPE)
