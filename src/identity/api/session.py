"""Session dependency for the HTTP layer.

The auth gateway in front of the storefront authenticates the caller and
forwards the result as headers; nothing here verifies credentials.
"""

from fastapi import Header

from identity.session import Role, Session


def current_session(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Session:
    role = (x_user_role or Role.CUSTOMER.value).strip().lower()
    return Session(user_id=x_user_id, role=role)
