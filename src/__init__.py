"""
Contract Auth Core - security primitives for the contract-management platform.

This package provides password strength evaluation, password policy
enforcement, and TOTP-based multi-factor authentication used by the
signup, password-reset, and MFA setup/verify flows.
"""

__version__ = "0.1.0"
__author__ = "Contract Management Team"
