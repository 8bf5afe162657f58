# Overview: Human-readable transaction code generation.

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime

from pos_backend.time_utils import compact_date

CODE_PREFIX = "TRX"
CODE_SUFFIX_LENGTH = 5
CODE_ALPHABET = string.ascii_uppercase + string.digits

CODE_PATTERN = re.compile(r"^TRX-\d{8}-[A-Z0-9]{5}$")


def generate_transaction_code(now: datetime | None = None) -> str:
    """
    Build a code like ``TRX-20260115-7KQ2M``.

    The suffix is random, not a per-day sequence, so no counter row has to
    be locked. Uniqueness is best effort: with 36**5 suffixes per day the
    chance that n codes of one day collide is roughly n**2 / (2 * 36**5)
    (about 0.8% at 1,000 sales a day). The transactions.code unique
    constraint catches the collision and checkout retries with a new code.
    """
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_SUFFIX_LENGTH))
    return f"{CODE_PREFIX}-{compact_date(now)}-{suffix}"


def is_transaction_code(value: str) -> bool:
    return bool(value) and CODE_PATTERN.match(value) is not None
