# counsel_intake/auth/permissions.py
"""
Staff authentication for the firm-facing routes.

Visitors filling in an intake never authenticate; everything that lists,
reads or deletes intakes, links, clients or notifications goes through
`get_auth_context`, which pins the caller to one organization.
"""

from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .security import decode_token
from counsel_intake.core.db import get_db
from counsel_intake.core.errors import AuthenticationError, AuthorizationError
from counsel_intake.models.orm import USER_ROLES, User


class AuthContext:
    """Staff member behind a request, scoped to their firm."""
    def __init__(self, user_id: int, email: str, organization_id: int, role: str, db: Session):
        self.user_id = user_id
        self.email = email
        self.organization_id = organization_id
        self.role = role
        self.db = db
        self._user: Optional[User] = None

    @property
    def user(self) -> User:
        if self._user is None:
            self._user = self.db.get(User, self.user_id)
            if not self._user:
                raise AuthenticationError("User not found or inactive")
        return self._user

    def is_admin(self) -> bool:
        return self.role == "admin"

    def require_admin(self):
        if not self.is_admin():
            raise AuthorizationError("Admin privileges required")


def _bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Missing authorization token")
    return authorization.split(" ", 1)[1].strip()


def get_auth_context(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db)
) -> AuthContext:
    """
    Resolve the Bearer JWT to an active staff member.

    Token claims: sub (email), user_id, organization_id, role. The claims
    only identify the user; role and firm are re-read from the database so a
    demoted or moved user loses access before the token expires.
    """
    claims = decode_token(_bearer(authorization))
    if not claims:
        raise AuthenticationError("Invalid or expired token")

    user_id = claims.get("user_id")
    if not all([user_id, claims.get("sub"), claims.get("organization_id")]) or claims.get("role") not in USER_ROLES:
        raise AuthenticationError("Invalid token payload")

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return AuthContext(
        user_id=user.id,
        email=user.email,
        organization_id=user.organization_id,
        role=user.role,
        db=db,
    )


def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Firm admins only (e.g. deleting an intake)."""
    auth.require_admin()
    return auth
