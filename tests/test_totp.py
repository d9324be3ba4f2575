"""
Tests for the TOTP engine.

Covers:
- Base32 encoding/decoding (RFC 4648 vectors, lenient decoding)
- Secret generation
- Code derivation (RFC 4226 / RFC 6238 vectors, pyotp interoperability)
- Verification window and fail-closed behavior
- otpauth:// provisioning URIs
"""
import hmac
import os
import re
from unittest.mock import patch

import pyotp
import pytest

from src.auth.totp import (
    BASE32_ALPHABET,
    base32_decode,
    base32_encode,
    build_otpauth_url,
    generate_secret,
    generate_totp,
    match_totp_counter,
    verify_totp,
)


# ============================================
# Base32 Tests
# ============================================

class TestBase32:
    """Test the RFC 4648 Base32 codec."""

    @pytest.mark.parametrize("raw,encoded", [
        (b"", ""),
        (b"f", "MY"),
        (b"fo", "MZXQ"),
        (b"foo", "MZXW6"),
        (b"foob", "MZXW6YQ"),
        (b"fooba", "MZXW6YTB"),
        (b"foobar", "MZXW6YTBOI"),
        (b"12345678901234567890", "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"),
    ])
    def test_rfc4648_vectors(self, raw, encoded):
        """Test RFC 4648 vectors without '=' padding."""
        assert base32_encode(raw) == encoded
        assert base32_decode(encoded) == raw

    def test_round_trip_random_bytes(self):
        """Test decode(encode(B)) == B across lengths and random content."""
        for length in range(0, 41):
            data = os.urandom(length)
            assert base32_decode(base32_encode(data)) == data

    def test_decode_is_case_insensitive(self):
        assert base32_decode("mzxw6ytboi") == b"foobar"

    def test_decode_ignores_invalid_characters(self):
        """Test that spaces, dashes, and padding are skipped."""
        assert base32_decode("MZXW 6YTB-OI") == b"foobar"
        assert base32_decode("MZXW6YTBOI======") == b"foobar"

    def test_decode_garbage_returns_empty(self):
        assert base32_decode("!!!! 0189") == b""


# ============================================
# Secret Generation Tests
# ============================================

class TestGenerateSecret:
    """Test TOTP secret generation."""

    def test_default_length(self):
        """Test that 32 random bytes become 52 Base32 characters."""
        secret = generate_secret()

        assert len(secret) == 52
        assert len(base32_decode(secret)) == 32

    def test_alphabet(self):
        secret = generate_secret()
        assert set(secret) <= set(BASE32_ALPHABET)
        assert "=" not in secret

    def test_custom_length(self):
        assert len(base32_decode(generate_secret(20))) == 20

    def test_secrets_are_unique(self):
        assert len({generate_secret() for _ in range(20)}) == 20

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            generate_secret(0)

    def test_random_source_failure_propagates(self):
        """Test that there is no silent fallback to weaker randomness."""
        with patch("src.auth.totp.secrets.token_bytes", side_effect=NotImplementedError("no entropy")):
            with pytest.raises(NotImplementedError):
                generate_secret()


# ============================================
# Code Generation Tests
# ============================================

class TestGenerateTOTP:
    """Test TOTP code derivation."""

    @pytest.mark.parametrize("counter,expected", [
        (0, "755224"),
        (1, "287082"),
        (2, "359152"),
        (3, "969429"),
        (4, "338314"),
        (5, "254676"),
        (6, "287922"),
        (7, "162583"),
        (8, "399871"),
        (9, "520489"),
    ])
    def test_rfc4226_vectors(self, rfc_secret, counter, expected):
        """Test HOTP vectors from RFC 4226 Appendix D."""
        assert generate_totp(rfc_secret, at=counter * 30) == expected

    @pytest.mark.parametrize("timestamp,expected", [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
        (2000000000, "279037"),
        (20000000000, "353130"),
    ])
    def test_rfc6238_vectors(self, rfc_secret, timestamp, expected):
        """Test RFC 6238 SHA1 vectors truncated to 6 digits."""
        assert generate_totp(rfc_secret, at=timestamp) == expected

    def test_matches_pyotp(self, fixed_time):
        """Test interoperability with an independent implementation."""
        secret = generate_secret()
        totp = pyotp.TOTP(secret)

        for offset in range(-3, 4):
            at = fixed_time + offset * 30
            assert generate_totp(secret, at=at) == totp.at(at)

    def test_format(self, fixed_time):
        code = generate_totp(generate_secret(), at=fixed_time)
        assert re.fullmatch(r"\d{6}", code)

    def test_deterministic_within_step(self, rfc_secret, fixed_time):
        """Test that two calls in the same 30-second window agree."""
        step_start = fixed_time - fixed_time % 30
        assert generate_totp(rfc_secret, at=step_start) == generate_totp(rfc_secret, at=step_start + 29)

    def test_offset_shifts_counter(self, rfc_secret, fixed_time):
        assert generate_totp(rfc_secret, 1, at=fixed_time) == generate_totp(rfc_secret, at=fixed_time + 30)
        assert generate_totp(rfc_secret, -1, at=fixed_time) == generate_totp(rfc_secret, at=fixed_time - 30)

    def test_uses_wall_clock(self, rfc_secret):
        with patch("src.auth.totp.time.time", return_value=1111111109.0):
            assert generate_totp(rfc_secret) == "081804"

    def test_negative_counter(self, rfc_secret):
        assert generate_totp(rfc_secret, -5, at=0) == ""

    def test_malformed_secret_does_not_raise(self, fixed_time):
        code = generate_totp("not base32 !!!", at=fixed_time)
        assert re.fullmatch(r"\d{6}", code)
        assert generate_totp("", at=fixed_time) is not None

    def test_secret_tolerates_formatting(self, rfc_secret, fixed_time):
        spaced = " ".join(rfc_secret[i:i + 4] for i in range(0, len(rfc_secret), 4)).lower()
        assert generate_totp(spaced, at=fixed_time) == generate_totp(rfc_secret, at=fixed_time)


# ============================================
# Verification Tests
# ============================================

class TestVerifyTOTP:
    """Test TOTP verification."""

    @pytest.mark.parametrize("offset", [-2, -1, 0, 1, 2])
    def test_accepts_codes_inside_window(self, rfc_secret, fixed_time, offset):
        code = generate_totp(rfc_secret, offset, at=fixed_time)
        assert verify_totp(code, rfc_secret, window=2, at=fixed_time) is True

    @pytest.mark.parametrize("offset", [-4, -3, 3, 4])
    def test_rejects_codes_outside_window(self, rfc_secret, fixed_time, offset):
        code = generate_totp(rfc_secret, offset, at=fixed_time)
        assert verify_totp(code, rfc_secret, window=2, at=fixed_time) is False

    def test_zero_window(self, rfc_secret, fixed_time):
        current = generate_totp(rfc_secret, at=fixed_time)
        previous = generate_totp(rfc_secret, -1, at=fixed_time)

        assert verify_totp(current, rfc_secret, window=0, at=fixed_time) is True
        assert verify_totp(previous, rfc_secret, window=0, at=fixed_time) is False

    def test_accepts_pyotp_codes(self, fixed_time):
        secret = pyotp.random_base32()
        assert verify_totp(pyotp.TOTP(secret).at(fixed_time), secret, at=fixed_time) is True

    def test_ignores_spaces_in_code(self, rfc_secret):
        assert verify_totp("081 804", rfc_secret, at=1111111109) is True

    @pytest.mark.parametrize("code", ["", "abcdef", "12345", "1234567", "08180a", None, 81804])
    def test_malformed_codes(self, rfc_secret, code):
        assert verify_totp(code, rfc_secret, at=1111111109) is False

    @pytest.mark.parametrize("secret", ["", "!!!!", "0189", None])
    def test_malformed_secrets(self, secret, fixed_time):
        code = generate_totp(secret or "", at=fixed_time)
        assert verify_totp(code, secret, at=fixed_time) is False

    def test_negative_window(self, rfc_secret, fixed_time):
        code = generate_totp(rfc_secret, at=fixed_time)
        assert verify_totp(code, rfc_secret, window=-1, at=fixed_time) is False

    def test_near_epoch(self, rfc_secret):
        """Test that steps before the epoch are skipped, not errors."""
        assert verify_totp("755224", rfc_secret, window=2, at=0) is True

    def test_checks_every_step(self, rfc_secret, fixed_time):
        """Test that a match does not stop the scan early (constant work)."""
        code = generate_totp(rfc_secret, -2, at=fixed_time)

        with patch("src.auth.totp.hmac.compare_digest", wraps=hmac.compare_digest) as compare:
            assert verify_totp(code, rfc_secret, window=2, at=fixed_time) is True

        assert compare.call_count == 5

    @pytest.mark.parametrize("offset", [-2, 0, 2])
    def test_match_reports_counter(self, rfc_secret, fixed_time, offset):
        """Test that the matched time step is returned for replay tracking."""
        code = generate_totp(rfc_secret, offset, at=fixed_time)
        assert match_totp_counter(code, rfc_secret, 2, at=fixed_time) == fixed_time // 30 + offset

    def test_match_rejects_with_none(self, rfc_secret, fixed_time):
        assert match_totp_counter("12345a", rfc_secret, at=fixed_time) is None
        assert match_totp_counter(generate_totp(rfc_secret, 5, at=fixed_time), rfc_secret, at=fixed_time) is None


# ============================================
# Provisioning URI Tests
# ============================================

class TestOTPAuthURL:
    """Test otpauth:// URI construction."""

    def test_format(self):
        uri = build_otpauth_url("JBSWY3DPEHPK3PXP", "john.doe@example.com", "Contract Management")

        assert uri == (
            "otpauth://totp/Contract%20Management:john.doe%40example.com"
            "?secret=JBSWY3DPEHPK3PXP&issuer=Contract%20Management"
            "&algorithm=SHA1&digits=6&period=30"
        )

    def test_labels_encoded_independently(self):
        """Test that a ':' inside a label cannot be confused with the separator."""
        uri = build_otpauth_url("JBSWY3DPEHPK3PXP", "a:b", "Acme & Co")
        assert uri.startswith("otpauth://totp/Acme%20%26%20Co:a%3Ab?")

    def test_parsed_by_pyotp(self):
        secret = generate_secret()
        uri = build_otpauth_url(secret, "user@example.com", "Contract Management")

        parsed = pyotp.parse_uri(uri)
        assert parsed.secret == secret
        assert parsed.issuer == "Contract Management"
        assert parsed.name == "user@example.com"
