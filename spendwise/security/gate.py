"""
Security Gate

Optional app lock in front of all data access. The configured mode is a
persisted preference; whether the gate is currently unlocked lives in
memory only and is never persisted.

Factors:
- password: the SHA-256 hex digest of the candidate is compared in
  constant time against the stored digest. The password itself is never
  stored or logged.
- biometric: delegated to a BiometricAuthenticator, treated as a black
  box that answers yes or no.

In ``both`` mode either factor alone unlocks. Failed attempts are
counted to drive a remaining-attempts hint; there is no lockout.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

from spendwise.config import SecuritySettings, get_settings
from spendwise.events import EventBus
from spendwise.log import get_logger
from spendwise.models.events import SessionEventBuilder
from spendwise.models.preferences import SecurityMode
from spendwise.services.storage.interface import LocalStoreInterface


logger = get_logger(__name__)


def hash_password(password: str) -> str:
    """SHA-256 hex digest of a password."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class BiometricAuthenticator(ABC):
    """Platform biometric check (Face ID, Touch ID, fingerprint...)."""

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    async def authenticate(self, reason: str) -> bool:
        """True if the user passed the check."""
        pass


class UnlockResult(BaseModel):
    """Outcome of an unlock attempt."""

    success: bool
    factor: Optional[str] = None
    failed_attempts: int = 0
    remaining_attempts: int = 0
    message: Optional[str] = None


class SecurityGate:
    """
    In-memory lock state over the persisted security mode.
    """

    def __init__(
        self,
        local_store: LocalStoreInterface,
        biometric: Optional[BiometricAuthenticator] = None,
        events: Optional[EventBus] = None,
        settings: Optional[SecuritySettings] = None,
    ):
        self._local = local_store
        self._biometric = biometric
        self._events = events
        self._settings = settings or get_settings().security
        self._unlocked = False
        self._failed_attempts = 0

    @property
    def configured_mode(self) -> SecurityMode:
        return self._local.load_security_mode()

    @property
    def is_enabled(self) -> bool:
        return self.configured_mode != SecurityMode.NONE

    @property
    def is_unlocked(self) -> bool:
        return self._unlocked

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    def is_satisfied(self) -> bool:
        """True when no lock is configured or the gate has been unlocked."""
        return not self.is_enabled or self._unlocked

    def lock(self) -> None:
        if not self.is_enabled:
            return
        was_unlocked = self._unlocked
        self._unlocked = False
        if was_unlocked:
            self._emit(SessionEventBuilder.security_locked(self.configured_mode.value))

    async def unlock(
        self,
        password: Optional[str] = None,
        use_biometrics: bool = False,
    ) -> UnlockResult:
        """
        Try the supplied factors in order (biometric first when requested).

        Args:
            password: Candidate password, if the user typed one
            use_biometrics: Ask the biometric authenticator

        Returns:
            UnlockResult; ``success`` is False when every supplied factor
            failed or none was supplied.
        """
        mode = self.configured_mode
        if mode == SecurityMode.NONE:
            self._unlocked = True
            return UnlockResult(success=True)

        factor = None
        if use_biometrics and mode.accepts_biometric and await self._check_biometric():
            factor = "biometric"
        elif password is not None and mode.accepts_password and self._check_password(password):
            factor = "password"

        if factor is not None:
            self._unlocked = True
            self._failed_attempts = 0
            self._emit(SessionEventBuilder.security_unlocked(mode.value, factor))
            return UnlockResult(success=True, factor=factor)

        self._failed_attempts += 1
        remaining = max(self._settings.attempt_warning_threshold - self._failed_attempts, 0)
        self._emit(SessionEventBuilder.security_unlock_failed(mode.value, self._failed_attempts))
        return UnlockResult(
            success=False,
            failed_attempts=self._failed_attempts,
            remaining_attempts=remaining,
            message=f"Authentication failed. {remaining} attempt(s) remaining.",
        )

    def _check_password(self, candidate: str) -> bool:
        stored = self._local.load_security_password_hash()
        if not stored:
            return False
        return hmac.compare_digest(hash_password(candidate), stored)

    async def _check_biometric(self) -> bool:
        if self._biometric is None:
            return False
        try:
            if not await self._biometric.is_available():
                return False
            return await self._biometric.authenticate(self._settings.biometric_reason)
        except Exception as e:
            logger.warning("biometric_check_failed", error=str(e))
            return False

    def configure(self, mode: SecurityMode, password: Optional[str] = None) -> None:
        """
        Set the lock mode.

        Raises:
            ValueError: A password mode without a password and no stored hash
        """
        if mode.accepts_password:
            if password:
                self._local.save_security_password_hash(hash_password(password))
            elif not self._local.load_security_password_hash():
                raise ValueError(f"Security mode '{mode.value}' requires a password")
        else:
            self._local.save_security_password_hash(None)

        self._local.save_security_mode(mode)
        # The user who just configured the lock is already past it.
        self._unlocked = True
        self._failed_attempts = 0
        logger.info("security_mode_configured", mode=mode.value)

    def reset(self) -> None:
        """Remove the lock entirely."""
        self._local.save_security_password_hash(None)
        self._local.save_security_mode(SecurityMode.NONE)
        self._unlocked = False
        self._failed_attempts = 0
        logger.info("security_reset")

    def _emit(self, event) -> None:
        if self._events is not None:
            self._events.emit(event)
