"""
Role assignment APIs (Admin).
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from auth.dependencies import get_db_session, require_admin
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from database.models import AppRole, AppUser
from services.audit_service import AuditAction, AuditService
from services.role_service import RoleService


router = APIRouter(prefix="/api/admin/users", tags=["users"])


class RoleAssignment(BaseModel):
    """Assign a role to an email."""
    email: EmailStr
    role: AppRole
    phoneNumber: Optional[str] = None


def _user_to_dict(user: AppUser) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.value if isinstance(user.role, AppRole) else user.role,
        "phoneNumber": user.phone_number,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def assign_role(
    body: RoleAssignment,
    request: Request,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Create a role assignment. 409 if the email already has one."""
    try:
        user = RoleService.assign(db, body.email, body.role, body.phoneNumber)
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.ROLE_ASSIGN,
        actor_email=identity.email,
        resource_type="app_user",
        resource_id=user.id,
        details={"email": user.email, "role": body.role.value},
    )
    return {"message": "User added successfully!", "user": _user_to_dict(user)}


@router.get("/by-role")
async def users_by_role(
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Role assignments grouped by role."""
    return [
        {
            "role": role,
            "count": len(users),
            "users": [{"email": u.email, "phoneNumber": u.phone_number} for u in users],
        }
        for role, users in RoleService.users_by_role(db).items()
    ]
