"""
Time-based One-Time Passwords (RFC 6238).

Self-contained implementation of the pieces an authenticator app needs:
- Base32 codec (RFC 4648, unpadded) for human-transcribable secrets
- HOTP code derivation (RFC 4226) over a 30-second time counter
- Verification against a tolerance window of time steps
- otpauth:// provisioning URIs

Compatible with Google Authenticator, Authy, and other TOTP apps.

Every function here fails closed: malformed secrets or codes never raise,
and verify_totp() answers False instead of propagating an error.
"""
import hashlib
import hmac
import logging
import secrets
import struct
import time
from typing import Optional
from urllib.parse import quote, urlencode

from .config import MFA_SECRET_BYTES, MFA_VERIFY_WINDOW

logger = logging.getLogger(__name__)

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_BASE32_LOOKUP = {char: index for index, char in enumerate(BASE32_ALPHABET)}

TOTP_DIGITS = 6
TOTP_PERIOD = 30
TOTP_ALGORITHM = "SHA1"
DEFAULT_VERIFY_WINDOW = MFA_VERIFY_WINDOW
DEFAULT_SECRET_BYTES = MFA_SECRET_BYTES


# ============================================
# Base32
# ============================================

def base32_encode(data: bytes) -> str:
    """
    Encode bytes as unpadded RFC 4648 Base32.

    Bits are consumed 5 at a time; a trailing group shorter than 5 bits
    is right-padded with zero bits.

    Args:
        data: Raw bytes.

    Returns:
        Base32 string (A-Z, 2-7), no '=' padding.
    """
    output = []
    buffer = 0
    bits = 0

    for byte in data:
        buffer = (buffer << 8) | byte
        bits += 8
        while bits >= 5:
            bits -= 5
            output.append(BASE32_ALPHABET[(buffer >> bits) & 0x1F])

    if bits:
        output.append(BASE32_ALPHABET[(buffer << (5 - bits)) & 0x1F])

    return "".join(output)


def base32_decode(encoded: str) -> bytes:
    """
    Decode a Base32 string leniently.

    Case-insensitive. Characters outside the alphabet (spaces, dashes,
    '=' padding, typos) are skipped rather than rejected, so secrets typed
    in by hand still decode. Leftover bits that do not fill a byte are
    dropped.

    Args:
        encoded: Base32 text.

    Returns:
        Decoded bytes (possibly empty).
    """
    output = bytearray()
    buffer = 0
    bits = 0

    for char in encoded.upper():
        value = _BASE32_LOOKUP.get(char)
        if value is None:
            continue
        buffer = ((buffer << 5) | value) & 0xFFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            output.append((buffer >> bits) & 0xFF)

    return bytes(output)


# ============================================
# Secrets
# ============================================

def generate_secret(byte_length: int = DEFAULT_SECRET_BYTES) -> str:
    """
    Generate a new TOTP secret for MFA enrollment.

    Uses the operating system CSPRNG. If that source is unavailable the
    error propagates; there is no fallback to weaker randomness.

    Args:
        byte_length: Number of random bytes (default 32).

    Returns:
        Base32-encoded secret.
    """
    if byte_length < 1:
        raise ValueError("byte_length must be at least 1")
    return base32_encode(secrets.token_bytes(byte_length))


# ============================================
# Code derivation
# ============================================

def _hotp(key: bytes, counter: int) -> str:
    """Derive a TOTP_DIGITS code for one counter value (RFC 4226)."""
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    truncated = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(truncated % 10 ** TOTP_DIGITS).zfill(TOTP_DIGITS)


def time_step(at: Optional[float] = None) -> int:
    """Return the 30-second counter for a Unix timestamp (default: now)."""
    if at is None:
        at = time.time()
    return int(at // TOTP_PERIOD)


def generate_totp(
    secret: str,
    time_step_offset: int = 0,
    *,
    at: Optional[float] = None,
) -> str:
    """
    Generate the TOTP code for the current (or given) time step.

    Args:
        secret: Base32-encoded shared secret.
        time_step_offset: Steps to shift the counter by (-1 = previous 30s).
        at: Unix timestamp to use instead of the wall clock.

    Returns:
        6-digit zero-padded code, or "" if the counter would be negative.
    """
    counter = time_step(at) + time_step_offset
    if counter < 0:
        return ""

    key = base32_decode(secret or "")
    if not key:
        logger.debug("TOTP secret decoded to an empty key")

    return _hotp(key, counter)


def match_totp_counter(
    code: str,
    secret: str,
    window: int = DEFAULT_VERIFY_WINDOW,
    *,
    at: Optional[float] = None,
) -> Optional[int]:
    """
    Find the time-step counter a TOTP code was generated for.

    Every offset in [-window, window] is checked, with a constant-time
    comparison for each candidate. Callers that must reject replays keep
    the returned counter and refuse codes at or below it.

    Args:
        code: Code entered by the user (spaces are ignored).
        secret: Base32-encoded TOTP secret.
        window: Number of 30-second steps tolerated on each side (default 2).
        at: Unix timestamp to use instead of the wall clock.

    Returns:
        The matching counter, or None if the code does not verify.
    """
    if not isinstance(code, str) or not isinstance(secret, str):
        return None
    if not code or not secret or window < 0:
        return None

    code = code.replace(" ", "")
    if len(code) != TOTP_DIGITS or not (code.isascii() and code.isdigit()):
        return None

    try:
        counter = time_step(at)
        key = base32_decode(secret)
        if not key:
            logger.warning("TOTP secret is not valid Base32; rejecting code")
            return None
        matched = None
        for offset in range(-window, window + 1):
            step = counter + offset
            if step < 0:
                continue
            # No early exit, so timing does not reveal which step matched
            if hmac.compare_digest(_hotp(key, step), code) and matched is None:
                matched = step
        return matched
    except (TypeError, ValueError, struct.error) as e:
        logger.warning(f"TOTP verification failed closed: {e}")
        return None


def verify_totp(
    code: str,
    secret: str,
    window: int = DEFAULT_VERIFY_WINDOW,
    *,
    at: Optional[float] = None,
) -> bool:
    """
    Verify a TOTP code against the secret.

    Returns:
        True if the code matches any step in [-window, window], False otherwise.
    """
    return match_totp_counter(code, secret, window, at=at) is not None


# ============================================
# Provisioning
# ============================================

def build_otpauth_url(secret: str, account_label: str, issuer: str) -> str:
    """
    Build an otpauth:// provisioning URI.

    Issuer and account label are percent-encoded independently, since
    either may contain reserved characters such as '@' or spaces.

    Args:
        secret: Base32-encoded TOTP secret.
        account_label: Account name shown in the app (usually the email).
        issuer: Application name shown in the app.

    Returns:
        otpauth://totp/... URI string.
    """
    label = f"{quote(issuer, safe='')}:{quote(account_label, safe='')}"
    params = urlencode(
        {
            "secret": secret,
            "issuer": issuer,
            "algorithm": TOTP_ALGORITHM,
            "digits": TOTP_DIGITS,
            "period": TOTP_PERIOD,
        },
        quote_via=quote,
    )
    return f"otpauth://totp/{label}?{params}"
