"""
Authentication dependencies for FastAPI.

Every role-scoped route goes through get_current_identity, which is where the
institutional-domain gate is enforced.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status, Security
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth.security import Identity, security, security_optional, decode_identity_token
from core.errors import AuthorizationError, to_http_exception
from core.logger import logger
from core.validators import derive_roll_no, is_institutional_email
from database.models import AppRole, Student
from services.audit_service import AuditAction, AuditService
from services.role_service import RoleService, domain_rejection_message
from services.session_service import SessionService
import config


def get_db_session():
    """Get database session."""
    if not config.db:
        raise HTTPException(status_code=503, detail="Database not initialized")
    with config.db.get_session() as session:
        yield session


def _identity_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[Identity]:
    """Decode a bearer token into a live identity; None if absent, invalid or revoked."""
    if credentials is None:
        return None
    identity = decode_identity_token(credentials.credentials)
    if identity is None:
        return None
    if SessionService.is_revoked(db, identity.token):
        return None
    return identity


async def get_identity_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security_optional),
    db: Session = Depends(get_db_session)
) -> Optional[Identity]:
    """
    Get the current identity if there is a live session, otherwise None.

    Does not apply the domain gate; callers that accept an optional identity
    (the redirect resolver) apply it themselves. If the revocation list cannot
    be read the token is taken at face value so the resolver can still fail open.
    """
    try:
        return _identity_from_credentials(credentials, db)
    except SQLAlchemyError as e:
        logger.error(f"Revocation check failed, continuing without it: {e}", exc_info=True)
        db.rollback()
        return decode_identity_token(credentials.credentials)


async def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(security),
    db: Session = Depends(get_db_session)
) -> Identity:
    """
    Get current identity from the identity-provider token.

    Raises:
        HTTPException: 401 if there is no live verified session, 403 (after
            terminating the session) if the email is not institutional
    """
    identity = _identity_from_credentials(credentials, db)
    if identity is None or not identity.verified:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not is_institutional_email(identity.email):
        SessionService.revoke(db, identity, reason="domain_mismatch")
        AuditService.log_from_request(
            db=db,
            request=request,
            action=AuditAction.FORCED_SIGN_OUT,
            actor_email=identity.email,
            details={"reason": "domain_mismatch", "path": request.url.path},
        )
        raise to_http_exception(AuthorizationError(domain_rejection_message()))

    return identity


async def get_current_role(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_session)
) -> AppRole:
    """Effective role of the caller (fail-open to student)."""
    return RoleService.effective_role(db, identity.email)


def require_role(allowed_roles: list[AppRole]):
    """
    Dependency factory for role-based access control.

    Args:
        allowed_roles: List of allowed roles

    Returns:
        Dependency function returning the caller's identity
    """
    async def role_checker(
        identity: Identity = Depends(get_current_identity),
        role: AppRole = Depends(get_current_role)
    ) -> Identity:
        if role not in allowed_roles:
            logger.info(f"Denied {identity.email} (role {role.value}); requires {[r.value for r in allowed_roles]}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(r.value for r in allowed_roles)}"
            )
        return identity

    return role_checker


require_admin = require_role([AppRole.ADMIN])
require_guard = require_role([AppRole.ADMIN, AppRole.GUARD])
require_student = require_role([AppRole.STUDENT])
require_any_role = require_role([AppRole.ADMIN, AppRole.GUARD, AppRole.STUDENT])


async def get_current_student(
    identity: Identity = Depends(require_student),
    db: Session = Depends(get_db_session)
) -> Student:
    """Student record of the caller, looked up by the roll number in their email."""
    roll_no = derive_roll_no(identity.email)
    student = db.query(Student).filter(Student.roll_no == roll_no).first()
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No student record found"
        )
    return student
