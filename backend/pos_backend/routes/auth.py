# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pos_backend/routes/auth.py
"""
Authentication API routes

- POST /login issues a bearer token (plaintext returned once)
- POST /logout revokes the presented token
- GET /me returns the current user

Self-registration does not exist; accounts are created with
`flask users create` or `flask system seed`.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import (
    PosError,
    error_response,
    internal_error_response,
    message_response,
    success_response,
)
from ..extensions import db
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Request body:
    {
        "email": "cashier@pos.local",
        "password": "..."
    }

    Returns:
        200: user + token
        400: Missing credentials
        401: Invalid credentials
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return message_response("INVALID_REQUEST", "email and password required", 400)

        user = auth_service.authenticate(db.session, email, password)
        if user is None:
            current_app.logger.info("Failed login for %s", email)
            return message_response("UNAUTHORIZED", "Invalid credentials", 401)

        record, token = session_service.create_session(
            db.session,
            user.id,
            ttl_hours=current_app.config["SESSION_TTL_HOURS"],
        )

        return success_response({
            "user": user.to_dict(),
            "token": token,
            "session": record.to_dict(),
        }, message="Login successful")

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return internal_error_response()


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(db.session, g.auth_token)
        return success_response(message="Logged out")
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return internal_error_response()


@auth_bp.get("/me")
@require_auth
def me_route():
    return success_response(g.current_user.to_dict())

