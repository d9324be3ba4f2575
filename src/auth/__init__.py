"""
Authentication security primitives.

This package provides:
- Password strength scoring and password policy schemas
- Password hashing and reuse prevention
- TOTP (RFC 6238) secrets, codes, verification, and provisioning URIs
- QR codes for authenticator enrollment
- MFA enrollment flow with one-time backup codes
"""
from .password_validator import (
    DEFAULT_PASSWORD_REQUIREMENTS,
    PasswordRequirements,
    PasswordSchema,
    PasswordStrengthResult,
    PasswordValidationError,
    UserContext,
    build_password_schema,
    evaluate_strength,
)
from .password_history import (
    hash_password,
    verify_password,
    is_password_reused,
    push_password_history,
)
from .totp import (
    base32_decode,
    base32_encode,
    build_otpauth_url,
    generate_secret,
    generate_totp,
    match_totp_counter,
    verify_totp,
)
from .qr import generate_qr_code, generate_qr_code_data_uri
from .backup_codes import (
    generate_backup_codes,
    hash_backup_codes,
    find_matching_backup_code,
)
from .mfa import (
    InMemoryMFAStore,
    InvalidMFACodeError,
    MFAAlreadyEnabledError,
    MFAError,
    MFAManager,
    MFANotConfiguredError,
    MFARecord,
    MFASettingsStore,
    MFAState,
    setup_mfa,
)

__all__ = [
    # Passwords
    "DEFAULT_PASSWORD_REQUIREMENTS",
    "PasswordRequirements",
    "PasswordSchema",
    "PasswordStrengthResult",
    "PasswordValidationError",
    "UserContext",
    "build_password_schema",
    "evaluate_strength",
    "hash_password",
    "verify_password",
    "is_password_reused",
    "push_password_history",

    # TOTP
    "base32_decode",
    "base32_encode",
    "build_otpauth_url",
    "generate_secret",
    "generate_totp",
    "match_totp_counter",
    "verify_totp",
    "generate_qr_code",
    "generate_qr_code_data_uri",

    # MFA
    "generate_backup_codes",
    "hash_backup_codes",
    "find_matching_backup_code",
    "InMemoryMFAStore",
    "InvalidMFACodeError",
    "MFAAlreadyEnabledError",
    "MFAError",
    "MFAManager",
    "MFANotConfiguredError",
    "MFARecord",
    "MFASettingsStore",
    "MFAState",
    "setup_mfa",
]
