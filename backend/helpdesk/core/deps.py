"""Common FastAPI dependencies for caller identity and authorization."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import AuthenticationException, InsufficientPermissionsError
from helpdesk.db.session import get_db
from helpdesk.models.enums import UserRole
from helpdesk.models.user import User

USER_ID_HEADER = "X-User-Id"


def _extract_user_id(request: Request) -> UUID | None:
    raw = request.headers.get(USER_ID_HEADER, "").strip()
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the identity forwarded by the upstream auth gateway."""
    user_id = _extract_user_id(request)
    if user_id is None:
        raise AuthenticationException(
            "not_authenticated",
            error_code="NOT_AUTHENTICATED",
            status_code=401,
        )

    user = db.get(User, user_id)
    if not user:
        raise AuthenticationException(
            "user_not_found",
            error_code="USER_NOT_FOUND",
            status_code=401,
        )
    return user


def require_roles(*required: UserRole):
    allowed = set(required)

    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise InsufficientPermissionsError("forbidden")
        return user

    return _checker


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.admin:
        raise InsufficientPermissionsError("forbidden")
    return user
