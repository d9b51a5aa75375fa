"""
Role resolution and post-login redirect.

Given an authenticated identity, decide which dashboard the user lands on.
Lookup failures fail open to the least-privileged role.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from auth.security import Identity
from core.errors import ConflictError, ValidationError
from core.logger import logger
from core.validators import is_institutional_email, normalize_email
from database.models import AppRole, AppUser
import config

# Role used when no assignment exists or the role store is unreachable
DEFAULT_ROLE = AppRole.STUDENT


class Destination(str, enum.Enum):
    """Landing pages a session can be routed to."""
    SIGN_IN = config.SIGN_IN_PATH
    ADMIN = config.ADMIN_HOME_PATH
    GUARD = config.GUARD_HOME_PATH
    STUDENT = config.STUDENT_HOME_PATH


ROLE_DESTINATIONS = {
    AppRole.ADMIN: Destination.ADMIN,
    AppRole.GUARD: Destination.GUARD,
    AppRole.STUDENT: Destination.STUDENT,
}


def domain_rejection_message() -> str:
    return f"Please sign in with your institute email (@{config.INSTITUTE_EMAIL_DOMAIN})"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a session."""
    destination: Destination
    role: Optional[AppRole] = None
    message: Optional[str] = None
    signed_out: bool = False


class RoleService:
    """Service for role lookup and landing-page resolution."""

    @staticmethod
    def lookup_role(db: Session, email: str) -> Optional[AppRole]:
        """
        Look up the assigned role for an email.

        Returns:
            The role, or None when no assignment exists. An assignment holding a
            value outside AppRole is treated as absent.

        Raises:
            SQLAlchemyError: when the role store cannot be queried
        """
        record = db.query(AppUser).filter(AppUser.email == normalize_email(email)).first()
        if record is None:
            return None
        if isinstance(record.role, AppRole):
            return record.role
        logger.warning(f"Ignoring unknown role {record.role!r} assigned to {email}")
        return None

    @staticmethod
    def effective_role(db: Session, email: str) -> AppRole:
        """Role used for authorization: the assigned role, or DEFAULT_ROLE on absence or store error."""
        try:
            role = RoleService.lookup_role(db, email)
        except SQLAlchemyError as e:
            logger.error(f"Role lookup failed for {email}, defaulting to {DEFAULT_ROLE.value}: {e}", exc_info=True)
            # Leave the session usable for the rest of the request
            db.rollback()
            return DEFAULT_ROLE
        return role or DEFAULT_ROLE

    @staticmethod
    def resolve(
        db: Session,
        identity: Optional[Identity],
        sign_out: Callable[[Identity], None],
    ) -> Resolution:
        """
        Decide where a session lands.

        Args:
            db: Database session used for the role lookup
            identity: Current identity, or None when there is no session
            sign_out: Terminates the identity's session; only called on domain mismatch

        Returns:
            Resolution with destination and, for role-scoped destinations, the role
        """
        if identity is None:
            return Resolution(destination=Destination.SIGN_IN)

        if not identity.verified:
            return Resolution(
                destination=Destination.SIGN_IN,
                message="Your email address has not been verified by the sign-in provider",
            )

        if not is_institutional_email(identity.email):
            logger.warning(f"Rejecting non-institutional session for {identity.email}")
            sign_out(identity)
            return Resolution(
                destination=Destination.SIGN_IN,
                message=domain_rejection_message(),
                signed_out=True,
            )

        role = RoleService.effective_role(db, identity.email)
        return Resolution(destination=ROLE_DESTINATIONS[role], role=role)

    @staticmethod
    def assign(db: Session, email: str, role: AppRole, phone_number: Optional[str] = None) -> AppUser:
        """
        Create a role assignment. One role per email.

        Raises:
            ValidationError: email outside the institute domain
            ConflictError: the email already has a role
        """
        email = normalize_email(email)
        if not is_institutional_email(email):
            raise ValidationError("email", domain_rejection_message())
        if db.query(AppUser.id).filter(AppUser.email == email).first() is not None:
            raise ConflictError(f"Email '{email}' already exists in the system.")

        user = AppUser(email=email, role=role, phone_number=(phone_number or "").strip() or None)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"Email '{email}' already exists in the system.")
        db.refresh(user)
        logger.info(f"Assigned role {role.value} to {email}")
        return user

    @staticmethod
    def users_by_role(db: Session) -> Dict[str, List[AppUser]]:
        """Role assignments grouped by role value, roles and emails in ascending order."""
        grouped: Dict[str, List[AppUser]] = {}
        for user in db.query(AppUser).order_by(AppUser.email.asc()).all():
            key = user.role.value if isinstance(user.role, AppRole) else str(user.role)
            grouped.setdefault(key, []).append(user)
        return dict(sorted(grouped.items()))
