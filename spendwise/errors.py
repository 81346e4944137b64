"""
Exception hierarchy for SpendWise.

Local persistence errors never leave the Local Store (they degrade to
"no data" / "no-op"). Remote errors are caught by the session controller
for ordinary CRUD; only authentication failures and explicit sync
actions reach the caller.
"""

from typing import Optional


class SpendWiseError(Exception):
    """Base exception for all SpendWise errors."""
    pass


# =============================================================================
# LOCAL PERSISTENCE
# =============================================================================

class StorageError(SpendWiseError):
    """Local persistence failed."""
    pass


class DataCorruptionError(StorageError):
    """A stored slot could not be deserialized."""

    def __init__(self, slot: str, reason: str):
        self.slot = slot
        self.reason = reason
        super().__init__(f"Corrupt data in slot '{slot}': {reason}")


# =============================================================================
# REMOTE STORE
# =============================================================================

class RemoteStoreError(SpendWiseError):
    """Base exception for remote store operations."""
    pass


class ConfigurationError(RemoteStoreError):
    """The remote endpoint is missing or malformed. Not retryable."""
    pass


class RemoteUnavailableError(RemoteStoreError):
    """Network failure or timeout talking to the remote store."""
    pass


class ServerError(RemoteUnavailableError):
    """The remote store answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def is_transport_failure(error: BaseException) -> bool:
    """True for network failures and timeouts, not for error responses."""
    return isinstance(error, RemoteUnavailableError) and not isinstance(error, ServerError)


class AuthenticationFailedError(RemoteStoreError):
    """Sign-in or sign-up credentials were rejected."""

    def __init__(self, message: str = "Please check your credentials and try again.", attempts: int = 0):
        self.message = message
        self.attempts = attempts
        super().__init__(message)


# =============================================================================
# SESSION
# =============================================================================

class SyncError(SpendWiseError):
    """An explicit sync action finished with one or more failures."""

    def __init__(self, failures: list[BaseException]):
        self.failures = failures
        super().__init__(f"Sync finished with {len(failures)} failure(s)")


class SecurityLockedError(SpendWiseError):
    """Data access attempted while the security gate is locked."""
    pass
