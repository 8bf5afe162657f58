# Overview: Service-layer operations for auth; password hashing, user creation and credential checks.

"""
Authentication Service

WHY: Every sale must be attributable to a cashier. Uses bcrypt for password
hashing; session tokens are handled separately (see session_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Unknown email and wrong password are indistinguishable to the caller
"""

from __future__ import annotations

import bcrypt
from sqlalchemy.orm import Session

from ..errors import InvalidRequest
from ..models import User
from ..models.auth import ROLE_CASHIER, VALID_ROLES
from .concurrency import atomic
from pos_backend.time_utils import utcnow

MIN_PASSWORD_LENGTH = 8
BCRYPT_ROUNDS = 12


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash password using bcrypt. Password is validated for length first."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe. A malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    session: Session,
    name: str,
    email: str,
    password: str,
    role: str = ROLE_CASHIER,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """
    Create a user account.

    Raises:
        InvalidRequest: missing name/email, weak password, unknown role,
            or email already registered
    """
    email = (email or "").strip().lower()
    name = (name or "").strip()
    role = (role or "").upper()

    if not name or not email:
        raise InvalidRequest("name and email are required")
    if role not in VALID_ROLES:
        raise InvalidRequest(f"role must be one of {list(VALID_ROLES)}", details={"role": role})

    password_hash = hash_password(password, rounds=rounds)

    with atomic(session):
        if session.query(User).filter(User.email == email).first():
            raise InvalidRequest("Email already registered", details={"email": email})
        user = User(name=name, email=email, password_hash=password_hash, role=role)
        session.add(user)
    return user


def authenticate(session: Session, email: str, password: str) -> User | None:
    """
    Check credentials. Returns the active User or None.

    Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = (
        session.query(User)
        .filter(User.email == email.strip().lower(), User.is_active.is_(True))
        .first()
    )
    if user is None or not verify_password(password, user.password_hash):
        return None

    with atomic(session):
        user.last_login_at = utcnow()
    return user
