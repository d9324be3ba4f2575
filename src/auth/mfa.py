"""
Multi-Factor Authentication (MFA) enrollment and verification.

Drives the per-user MFA lifecycle on top of the TOTP primitives:

    NOT_CONFIGURED --begin_setup--> PENDING_VERIFICATION --verify--> ENABLED
          ^                                                            |
          +---------------------------disable--------------------------+

The first successful verify() enables MFA and issues one-time backup codes.
Persistence is delegated to an MFASettingsStore passed to MFAManager, so
the same flow works against the user-profile database or in memory.
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

from .backup_codes import find_matching_backup_code, generate_backup_codes, hash_backup_codes
from .config import MFA_BACKUP_CODE_COUNT, MFA_ISSUER, MFA_VERIFY_WINDOW
from .models import MFASetupResponse, MFAVerifyResponse
from .qr import generate_qr_code_data_uri
from .totp import build_otpauth_url, generate_secret, match_totp_counter

logger = logging.getLogger(__name__)


class MFAError(ValueError):
    """Base class for MFA flow errors."""


class MFANotConfiguredError(MFAError):
    """No MFA setup exists for the user."""


class MFAAlreadyEnabledError(MFAError):
    """MFA is already enabled; disable it before setting up again."""


class InvalidMFACodeError(MFAError):
    """The submitted code did not verify."""


class MFAState(str, Enum):
    NOT_CONFIGURED = "not_configured"
    PENDING_VERIFICATION = "pending_verification"
    ENABLED = "enabled"


@dataclass(frozen=True)
class MFARecord:
    """MFA settings for one user, as kept by the store."""
    user_id: str
    totp_secret: str
    enabled: bool = False
    backup_code_hashes: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    confirmed_at: Optional[datetime] = None
    # Time step of the last accepted TOTP code; older or equal steps are replays
    last_used_counter: Optional[int] = None

    @property
    def state(self) -> MFAState:
        return MFAState.ENABLED if self.enabled else MFAState.PENDING_VERIFICATION


class MFASettingsStore(Protocol):
    """Persistence for MFA records (user-profile database, cache, ...)."""

    def get(self, user_id: str) -> Optional[MFARecord]:
        ...

    def save(self, record: MFARecord) -> None:
        ...

    def delete(self, user_id: str) -> None:
        ...


class InMemoryMFAStore:
    """Thread-safe dict-backed MFASettingsStore for tests and single-process use."""

    def __init__(self):
        self._records: Dict[str, MFARecord] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[MFARecord]:
        with self._lock:
            return self._records.get(user_id)

    def save(self, record: MFARecord) -> None:
        with self._lock:
            self._records[record.user_id] = record

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._records.pop(user_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def setup_mfa(account_label: str, issuer: str = MFA_ISSUER) -> Tuple[str, str, str]:
    """
    Generate everything an authenticator app needs: secret, URI, and QR code.

    Args:
        account_label: Account name shown in the app (usually the email).
        issuer: Application name.

    Returns:
        Tuple of (secret, provisioning_uri, qr_code_data_uri).
    """
    secret = generate_secret()
    uri = build_otpauth_url(secret, account_label, issuer)
    return secret, uri, generate_qr_code_data_uri(uri)


class MFAManager:
    """
    Manages MFA operations for users.

    Each read-check-write sequence on a user's record runs under a per-user
    lock, so a backup code or TOTP step is consumed at most once even when
    requests race. The lock is process-local; a store shared across
    processes must serialize updates itself.

    Example usage:
        manager = MFAManager(InMemoryMFAStore())

        setup = manager.begin_setup("user-1", "user@example.com")
        # user scans setup.qr_code, then submits a code
        result = manager.verify("user-1", "123456")
        print(result.backup_codes)
    """

    def __init__(
        self,
        store: MFASettingsStore,
        issuer: str = MFA_ISSUER,
        verify_window: int = MFA_VERIFY_WINDOW,
        backup_code_count: int = MFA_BACKUP_CODE_COUNT,
    ):
        self.store = store
        self.issuer = issuer
        self.verify_window = verify_window
        self.backup_code_count = backup_code_count
        self._user_locks: Dict[str, threading.Lock] = {}
        self._user_locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._user_locks_guard:
            return self._user_locks.setdefault(user_id, threading.Lock())

    def _accept_code(self, record: MFARecord, code: str, at: Optional[float]) -> int:
        """
        Match a TOTP code and return its counter.

        Raises:
            InvalidMFACodeError: If the code does not verify or its time step
                was already used.
        """
        counter = match_totp_counter(code, record.totp_secret, self.verify_window, at=at)
        if counter is None:
            logger.warning(f"Invalid MFA code for user: {record.user_id}")
            raise InvalidMFACodeError("Invalid verification code")
        if record.last_used_counter is not None and counter <= record.last_used_counter:
            logger.warning(f"Replayed MFA code for user: {record.user_id}")
            raise InvalidMFACodeError("Verification code already used")
        return counter

    def get_state(self, user_id: str) -> MFAState:
        record = self.store.get(user_id)
        return record.state if record else MFAState.NOT_CONFIGURED

    def is_mfa_required(self, user_id: str) -> bool:
        """True if the user must pass a second factor at login."""
        return self.get_state(user_id) is MFAState.ENABLED

    def remaining_backup_codes(self, user_id: str) -> int:
        record = self.store.get(user_id)
        return len(record.backup_code_hashes) if record else 0

    def begin_setup(self, user_id: str, account_label: str) -> MFASetupResponse:
        """
        Begin MFA setup for a user.

        Generates a new TOTP secret and stores it as pending. Calling this
        again before verification replaces the pending secret.

        Args:
            user_id: User's ID.
            account_label: Label for the authenticator app (usually the email).

        Returns:
            MFASetupResponse with secret, provisioning URI, and QR code.

        Raises:
            MFAAlreadyEnabledError: If MFA is already enabled.
        """
        with self._lock_for(user_id):
            if self.get_state(user_id) is MFAState.ENABLED:
                raise MFAAlreadyEnabledError(
                    "MFA is already enabled. Disable it first to set up a new authenticator."
                )

            secret, uri, qr_code = setup_mfa(account_label, issuer=self.issuer)
            self.store.save(MFARecord(user_id=user_id, totp_secret=secret))

        logger.info(f"MFA setup initiated for user: {user_id}")
        return MFASetupResponse(secret=secret, provisioning_uri=uri, qr_code=qr_code)

    def verify(self, user_id: str, code: str, at: Optional[float] = None) -> MFAVerifyResponse:
        """
        Verify a TOTP code, enabling MFA on the first success.

        A code is accepted once: later codes must come from a newer time step.

        Args:
            user_id: User's ID.
            code: 6-digit code from the authenticator app.
            at: Unix timestamp to verify against (default: now).

        Returns:
            MFAVerifyResponse; carries fresh backup codes when this call
            enabled MFA.

        Raises:
            MFANotConfiguredError: If setup was never started.
            InvalidMFACodeError: If the code does not verify or was replayed.
        """
        with self._lock_for(user_id):
            record = self.store.get(user_id)
            if record is None:
                raise MFANotConfiguredError("MFA not configured")

            counter = self._accept_code(record, code, at)

            if record.enabled:
                self.store.save(replace(record, last_used_counter=counter))
                logger.debug(f"MFA code verified for user: {user_id}")
                return MFAVerifyResponse()

            backup_codes = generate_backup_codes(self.backup_code_count)
            self.store.save(replace(
                record,
                enabled=True,
                backup_code_hashes=hash_backup_codes(backup_codes),
                confirmed_at=datetime.now(timezone.utc),
                last_used_counter=counter,
            ))

        logger.info(f"MFA enabled for user: {user_id}")
        return MFAVerifyResponse(
            message="MFA enabled successfully. Store your backup codes securely!",
            backup_codes=backup_codes,
        )

    def verify_backup_code(self, user_id: str, backup_code: str) -> bool:
        """
        Verify and consume a backup code.

        Returns:
            True if the code matched an unused backup code (now consumed).
        """
        with self._lock_for(user_id):
            record = self.store.get(user_id)
            if record is None or not record.enabled:
                return False

            index = find_matching_backup_code(backup_code, record.backup_code_hashes)
            if index is None:
                logger.warning(f"Invalid backup code for user: {user_id}")
                return False

            remaining = record.backup_code_hashes[:index] + record.backup_code_hashes[index + 1:]
            self.store.save(replace(record, backup_code_hashes=remaining))

        logger.info(f"Backup code used for user: {user_id} ({len(remaining)} remaining)")
        return True

    def disable(self, user_id: str, code: str, at: Optional[float] = None) -> None:
        """
        Disable MFA for a user.

        Requires a currently valid TOTP code that has not been used before.

        Raises:
            MFANotConfiguredError: If MFA is not enabled.
            InvalidMFACodeError: If the code does not verify or was replayed.
        """
        with self._lock_for(user_id):
            record = self.store.get(user_id)
            if record is None or not record.enabled:
                raise MFANotConfiguredError("MFA is not enabled")

            self._accept_code(record, code, at)
            self.store.delete(user_id)

        logger.info(f"MFA disabled for user: {user_id}")
