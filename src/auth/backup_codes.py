"""
One-time backup codes for MFA account recovery.

Codes are shown to the user once, stored only as bcrypt hashes, and each
can be consumed a single time.
"""
import logging
import secrets
from typing import List, Optional

import bcrypt

from .config import BACKUP_CODE_BCRYPT_ROUNDS, MFA_BACKUP_CODE_COUNT

logger = logging.getLogger(__name__)


def generate_backup_codes(count: int = MFA_BACKUP_CODE_COUNT) -> List[str]:
    """
    Generate distinct backup codes for account recovery.

    Args:
        count: Number of backup codes to generate.

    Returns:
        List of codes formatted as XXXX-XXXX (uppercase hex).
    """
    codes: List[str] = []
    while len(codes) < count:
        raw = secrets.token_bytes(4).hex().upper()
        code = f"{raw[:4]}-{raw[4:]}"
        if code not in codes:
            codes.append(code)
    return codes


def normalize_backup_code(code: str) -> str:
    """Strip separators and whitespace, uppercase ("a1b2 c3d4" -> "A1B2C3D4")."""
    return "".join(ch for ch in code if ch.isalnum()).upper()


def hash_backup_code(code: str) -> str:
    """
    Hash a backup code for secure storage.

    Args:
        code: Plain text backup code (e.g., "A1B2-C3D4").

    Returns:
        Bcrypt hash of the normalized code.
    """
    salt = bcrypt.gensalt(rounds=BACKUP_CODE_BCRYPT_ROUNDS)
    return bcrypt.hashpw(normalize_backup_code(code).encode("utf-8"), salt).decode("utf-8")


def hash_backup_codes(codes: List[str]) -> List[str]:
    """Hash backup codes for storage, keeping their order (index = code slot)."""
    return list(map(hash_backup_code, codes))


def verify_backup_code(code: str, hashed_code: str) -> bool:
    """
    Verify a backup code against its hash.

    Args:
        code: Plain text backup code entered by user.
        hashed_code: Stored bcrypt hash.

    Returns:
        True if code matches, False otherwise (including malformed hashes).
    """
    normalized = normalize_backup_code(code or "")
    if not normalized:
        return False
    try:
        return bcrypt.checkpw(normalized.encode("utf-8"), hashed_code.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        logger.warning("Stored backup code hash is malformed")
        return False


def find_matching_backup_code(code: str, hashed_codes: List[str]) -> Optional[int]:
    """
    Find the index of a matching backup code.

    Every stored hash is checked, so the time taken does not reveal the
    position of the match.

    Args:
        code: Plain text backup code entered by user.
        hashed_codes: List of stored bcrypt hashes.

    Returns:
        Index of the matching code, or None if not found.
    """
    matched = None
    for i, hashed in enumerate(hashed_codes):
        if verify_backup_code(code, hashed) and matched is None:
            matched = i
    return matched
