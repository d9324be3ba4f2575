"""
Pytest configuration and shared fixtures for the auth core tests.

This module provides common test fixtures for:
- RFC 6238 reference secrets and timestamps
- In-memory MFA stores and managers
- Sample user data
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path for `src.*` imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Cheap bcrypt cost factors - set BEFORE src.auth.config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("BACKUP_CODE_BCRYPT_ROUNDS", "4")


# ============================================
# TOTP Fixtures
# ============================================

@pytest.fixture
def rfc_secret():
    """
    Base32 form of the RFC 4226 / RFC 6238 SHA1 test seed
    "12345678901234567890".
    """
    return "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.fixture
def fixed_time():
    """A timestamp well away from the epoch and from step boundaries."""
    return 1_700_000_015


# ============================================
# MFA Fixtures
# ============================================

@pytest.fixture
def mfa_store():
    """Empty in-memory MFA settings store."""
    from src.auth.mfa import InMemoryMFAStore
    return InMemoryMFAStore()


@pytest.fixture
def mfa_manager(mfa_store):
    """MFAManager wired to the in-memory store."""
    from src.auth.mfa import MFAManager
    return MFAManager(mfa_store, issuer="Contract Management")


@pytest.fixture
def sample_user():
    """
    Provide sample user data for authentication tests.
    """
    return {
        "user_id": "550e8400-e29b-41d4-a716-446655440000",
        "email": "john.doe@example.com",
        "name": "John Doe",
        "password": "Tr1cky-Gl@cier-Lamp",
    }
