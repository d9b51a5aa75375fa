"""
Session endpoints: post-login redirect, sign-out, and current-user info.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from auth.dependencies import get_db_session, get_identity_optional, require_any_role, get_current_role
from auth.security import Identity
from core.validators import derive_roll_no
from database.models import AppRole
from services.audit_service import AuditAction, AuditService
from services.role_service import RoleService
from services.session_service import SessionService


router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.get("/redirect")
async def resolve_redirect(
    request: Request,
    identity: Optional[Identity] = Depends(get_identity_optional),
    db: Session = Depends(get_db_session)
):
    """
    Where the client should land after sign-in.

    Never fails: without a live session the answer is the sign-in page. A session
    from outside the institute domain is terminated here.
    """
    def sign_out(rejected: Identity) -> None:
        SessionService.revoke(db, rejected, reason="domain_mismatch")
        AuditService.log_from_request(
            db=db,
            request=request,
            action=AuditAction.FORCED_SIGN_OUT,
            actor_email=rejected.email,
            details={"reason": "domain_mismatch", "path": request.url.path},
        )

    resolution = RoleService.resolve(db, identity, sign_out=sign_out)
    return {
        "destination": resolution.destination.value,
        "role": resolution.role.value if resolution.role else None,
        "message": resolution.message,
        "signedOut": resolution.signed_out,
    }


@router.post("/sign-out")
async def sign_out(
    identity: Optional[Identity] = Depends(get_identity_optional),
    db: Session = Depends(get_db_session)
):
    """Terminate the presented session. Signing out twice is harmless."""
    if identity is not None:
        SessionService.revoke(db, identity, reason="sign_out")
    return {"success": True}


@router.get("/me")
async def get_me(
    identity: Identity = Depends(require_any_role),
    role: AppRole = Depends(get_current_role),
):
    """Current user's email, roll number and effective role."""
    return {
        "email": identity.email,
        "rollNo": derive_roll_no(identity.email),
        "role": role.value,
    }
