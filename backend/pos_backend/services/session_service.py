# Overview: Bearer session tokens; issue, validate and revoke.

"""
Session Token Management Service

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage; the plaintext is returned once
- Absolute timeout (SESSION_TTL_HOURS, default 12)
- Revocable on logout
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from ..models import SessionToken, User
from .concurrency import atomic
from pos_backend.time_utils import utcnow

DEFAULT_TTL_HOURS = 12


def generate_token() -> str:
    """64 hex characters from secrets.token_hex; never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough here: tokens are already high-entropy, unlike passwords."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    session: Session,
    user_id: str,
    ttl_hours: int = DEFAULT_TTL_HOURS,
) -> tuple[SessionToken, str]:
    """
    Returns (session_record, plaintext_token).
    """
    plaintext_token = generate_token()
    now = utcnow()

    with atomic(session):
        record = SessionToken(
            user_id=user_id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )
        session.add(record)

    return record, plaintext_token


def validate_session(session: Session, token: str) -> User | None:
    """
    Resolve a bearer token to its active user.

    Returns None when the token is unknown, revoked, expired, or belongs to a
    deactivated user.
    """
    if not token:
        return None

    record = (
        session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token))
        .first()
    )
    if record is None or record.revoked_at is not None:
        return None
    if record.expires_at <= utcnow():
        return None

    user = record.user
    if user is None or not user.is_active:
        return None
    return user


def revoke_session(session: Session, token: str) -> bool:
    """Returns True if an active session was revoked."""
    with atomic(session):
        record = (
            session.query(SessionToken)
            .filter(
                SessionToken.token_hash == hash_token(token),
                SessionToken.revoked_at.is_(None),
            )
            .first()
        )
        if record is None:
            return False
        record.revoked_at = utcnow()
    return True
