"""
Authentication configuration for the contract-management security core.

All values are read from environment variables at import time, with
defaults suitable for development. Everything else in ``src.auth``
imports its tunables from here.
"""
import os

# ============================================
# MFA / TOTP
# ============================================

# Issuer shown in authenticator apps
MFA_ISSUER = os.getenv("MFA_ISSUER", "Contract Management")

# Number of 30-second steps accepted on each side of "now"
MFA_VERIFY_WINDOW = int(os.getenv("MFA_VERIFY_WINDOW", 2))

# Random bytes per TOTP secret (32 bytes -> 52 Base32 characters)
MFA_SECRET_BYTES = int(os.getenv("MFA_SECRET_BYTES", 32))

MFA_BACKUP_CODE_COUNT = int(os.getenv("MFA_BACKUP_CODE_COUNT", 10))

# ============================================
# Hashing
# ============================================

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# Backup codes are checked one by one, so they use a cheaper cost factor
BACKUP_CODE_BCRYPT_ROUNDS = int(os.getenv("BACKUP_CODE_BCRYPT_ROUNDS", 10))

# ============================================
# Password policy
# ============================================

PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", 12))

# How many recent hashes a new password is compared against
PASSWORD_HISTORY_LIMIT = int(os.getenv("PASSWORD_HISTORY_LIMIT", 5))

# How many hashes are kept on the profile
PASSWORD_HISTORY_MAX = int(os.getenv("PASSWORD_HISTORY_MAX", 10))
