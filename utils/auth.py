"""Request authentication and role checks."""

from __future__ import annotations

from functools import wraps

from flask_jwt_extended import current_user, jwt_required, verify_jwt_in_request
from werkzeug.exceptions import Forbidden

from models.user import ADMIN_ROLES

__all__ = ["ADMIN_ROLES", "authenticate", "current_user", "role_required"]

# Rejects the request with 401 unless a valid access token is present; the
# matching user is then available as ``current_user``.
authenticate = jwt_required()


def role_required(*roles: str):
    """Authenticate the caller and require their stored role to be in ``roles``.

    The role is read from the loaded user rather than the token claim, so a
    demotion takes effect on the next request.
    """

    allowed = set(roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if current_user.role not in allowed:
                raise Forbidden("You do not have permission to perform this action.")
            return view(*args, **kwargs)

        return wrapper

    return decorator
