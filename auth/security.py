"""
Identity-provider session tokens.

The app does not authenticate users itself. An identity provider signs a JWT
carrying the user's email; the app verifies it, reads the email, and keeps a
revocation list so that a session can be terminated server-side.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import hashlib
import uuid

from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from core.logger import logger
from core.validators import normalize_email
import config

# Security schemes
security = HTTPBearer()
security_optional = HTTPBearer(auto_error=False)  # For endpoints that work without a session


@dataclass(frozen=True)
class Identity:
    """Authenticated identity as seen by the app: an email and a live session token."""
    email: str
    verified: bool
    token: str
    expires_at: Optional[datetime] = None

    @property
    def token_hash(self) -> str:
        return hash_session_token(self.token)


def hash_session_token(token: str) -> str:
    """Hash a session token for storage/comparison."""
    return hashlib.sha256(token.encode()).hexdigest()


def create_identity_token(
    email: str,
    verified: bool = True,
    secret_key: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Mint an identity token the way the identity provider does.

    Used by tests and local tooling; production tokens come from the provider.
    """
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=config.IDENTITY_TOKEN_EXPIRE_MINUTES))
    claims: Dict[str, Any] = {
        "sub": email,
        "email": email,
        "email_verified": verified,
        "iat": now,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    if config.IDENTITY_TOKEN_AUDIENCE:
        claims["aud"] = config.IDENTITY_TOKEN_AUDIENCE
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(
        claims,
        secret_key or config.IDENTITY_TOKEN_SECRET,
        algorithm=config.IDENTITY_TOKEN_ALGORITHM,
    )


def decode_identity_token(token: str, secret_key: Optional[str] = None) -> Optional[Identity]:
    """
    Decode and verify an identity-provider token.

    Args:
        token: JWT token string
        secret_key: Secret key for verification

    Returns:
        Identity, or None if the token is invalid, expired, or carries no email
    """
    options = {"verify_aud": bool(config.IDENTITY_TOKEN_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            secret_key or config.IDENTITY_TOKEN_SECRET,
            algorithms=[config.IDENTITY_TOKEN_ALGORITHM],
            audience=config.IDENTITY_TOKEN_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.debug(f"Rejected identity token: {e}")
        return None

    email = normalize_email(payload.get("email") or payload.get("sub"))
    if not email:
        return None

    expires_at = None
    if payload.get("exp") is not None:
        expires_at = datetime.utcfromtimestamp(int(payload["exp"]))

    return Identity(
        email=email,
        verified=bool(payload.get("email_verified", False)),
        token=token,
        expires_at=expires_at,
    )
