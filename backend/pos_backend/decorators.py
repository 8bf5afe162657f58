# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import g, request

from .errors import message_response
from .extensions import db
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets:
    - g.current_user: the authenticated User
    - g.auth_token: the plaintext bearer token (for logout)

    Returns 401 if the header is missing, the token is unknown, revoked or
    expired, or the account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return message_response("UNAUTHORIZED", "Authentication required", 401)

        user = session_service.validate_session(db.session, token)
        if user is None:
            return message_response("UNAUTHORIZED", "Invalid or expired token", 401)

        g.current_user = user
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require one of the given roles. Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return message_response("UNAUTHORIZED", "Authentication required", 401)

            if user.role not in roles:
                return message_response("FORBIDDEN", "Permission denied", 403)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
