"""
Password hashing and reuse prevention.

The profile store keeps a newest-first list of bcrypt hashes of previous
passwords. Because bcrypt hashes are salted, reuse is detected by checking
the candidate against each stored hash, not by comparing hash strings.
"""
import logging
from typing import List, Optional, Sequence

import bcrypt

from .config import BCRYPT_ROUNDS, PASSWORD_HISTORY_LIMIT, PASSWORD_HISTORY_MAX

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password.
        rounds: Cost factor (defaults to BCRYPT_ROUNDS).

    Returns:
        Bcrypt hash string.
    """
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        password: Plain text password to verify.
        password_hash: Stored bcrypt hash.

    Returns:
        True if password matches, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def is_password_reused(
    password: str,
    history: Sequence[str],
    limit: int = PASSWORD_HISTORY_LIMIT,
) -> bool:
    """
    Check whether a password matches one of the most recent stored hashes.

    Args:
        password: Candidate plain text password.
        history: Newest-first bcrypt hashes from the user profile.
        limit: How many recent entries to check.

    Returns:
        True if the password was used recently.
    """
    return any(verify_password(password, old_hash) for old_hash in list(history)[:limit])


def push_password_history(
    history: Sequence[str],
    password_hash: str,
    max_history: int = PASSWORD_HISTORY_MAX,
) -> List[str]:
    """
    Return a new history list with ``password_hash`` prepended.

    The input sequence is not modified; the result is truncated to
    ``max_history`` entries.
    """
    return [password_hash, *history][:max_history]
