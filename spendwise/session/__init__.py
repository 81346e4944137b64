"""Session lifecycle package."""

from spendwise.session.controller import SessionController, SessionState
from spendwise.session.identity import IdentityService

__all__ = [
    "IdentityService",
    "SessionController",
    "SessionState",
]
