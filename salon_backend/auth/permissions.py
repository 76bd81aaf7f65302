"""Role checks shared by every route that touches staff-owned records.

Admin rights come from ``User.role`` only; nothing compares email addresses.
"""

from fastapi import Depends

from salon_backend.auth.dependencies import get_current_user
from salon_backend.core.errors import Forbidden
from salon_backend.models.user import User, UserRole

STAFF_ROLES = {UserRole.EMPLOYEE.value, UserRole.ADMIN.value}


def is_employee(user: User | None) -> bool:
    return user is not None and user.role in STAFF_ROLES


def is_admin(user: User | None) -> bool:
    return user is not None and user.role == UserRole.ADMIN.value


def can_manage(user: User | None, owner_id: int | None) -> bool:
    """True when ``user`` may edit a record owned by ``owner_id``."""
    if not is_employee(user):
        return False
    return is_admin(user) or (owner_id is not None and user.id == owner_id)


def require_employee(current_user: User = Depends(get_current_user)) -> User:
    if not is_employee(current_user):
        raise Forbidden('Employee access only')
    return current_user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not is_admin(current_user):
        raise Forbidden('Admin access only')
    return current_user
