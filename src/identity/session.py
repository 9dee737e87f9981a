"""Request-scoped user context.

The identity provider is external; callers build a ``Session`` from whatever
it hands them and pass it explicitly to every cart and order operation.
"""

from dataclasses import dataclass
from enum import Enum

from shared.errors import NotAuthenticated, PermissionDenied


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Session:
    user_id: str | None = None
    role: str = Role.CUSTOMER.value

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.user_id.strip())

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == Role.ADMIN.value


ANONYMOUS = Session()


def require_user(session: Session | None) -> str:
    """Return the authenticated user id or raise ``NotAuthenticated``."""
    if session is None or not session.is_authenticated:
        raise NotAuthenticated()
    return session.user_id.strip()


def require_admin(session: Session | None) -> str:
    user_id = require_user(session)
    if not session.is_admin:
        raise PermissionDenied({"role": ["Administrator role required"]})
    return user_id
