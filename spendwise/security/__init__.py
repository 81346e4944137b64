"""Security gate (app lock) package."""

from spendwise.security.gate import (
    BiometricAuthenticator,
    SecurityGate,
    UnlockResult,
    hash_password,
)

__all__ = [
    "BiometricAuthenticator",
    "SecurityGate",
    "UnlockResult",
    "hash_password",
]
