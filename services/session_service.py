"""
Server-side session termination for identity-provider tokens.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.security import Identity, hash_session_token
from database.models import RevokedSession
from core.logger import logger


class SessionService:
    """Revocation list for bearer sessions."""

    @staticmethod
    def is_revoked(db: Session, token: str) -> bool:
        token_hash = hash_session_token(token)
        return db.query(RevokedSession.id).filter(
            RevokedSession.token_hash == token_hash
        ).first() is not None

    @staticmethod
    def revoke(db: Session, identity: Identity, reason: str = "sign_out") -> None:
        """
        Terminate a session. Revoking an already revoked session is a no-op.

        Args:
            db: Database session
            identity: Identity whose token is terminated
            reason: Why the session ended (sign_out, domain_mismatch)
        """
        if SessionService.is_revoked(db, identity.token):
            return
        db.add(RevokedSession(
            token_hash=identity.token_hash,
            email=identity.email,
            reason=reason,
            expires_at=identity.expires_at,
        ))
        try:
            db.commit()
        except IntegrityError:
            # Concurrent revocation of the same token
            db.rollback()
        logger.info(f"Session terminated for {identity.email} ({reason})")
