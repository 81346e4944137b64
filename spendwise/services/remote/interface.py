"""
Abstract Remote Store Interface

The hosted backend that mirrors an authenticated user's records. The
session controller depends only on this interface, so tests and
offline builds can swap in a fake.

Every method may raise:
- ConfigurationError: endpoint missing or malformed (fatal)
- RemoteUnavailableError: transport failure or timeout
- ServerError: non-success response
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from spendwise.models.records import FinancialRecord, RecordKind


class AuthSession(BaseModel):
    """Result of a successful sign-in or sign-up."""

    email: str
    access_token: Optional[str] = Field(
        default=None,
        description="Bearer token for subsequent calls; absent when sign-up needs confirmation"
    )
    user_id: Optional[str] = None
    display_name: Optional[str] = None


class RemoteStoreInterface(ABC):
    """Async CRUD over record collections, scoped by identity (email)."""

    @abstractmethod
    async def fetch(self, kind: RecordKind, identity: str) -> list[FinancialRecord]:
        """
        Fetch all live records of ``kind`` for ``identity``.

        Returns:
            Records sorted by ``occurred_at`` descending
        """
        pass

    @abstractmethod
    async def create(self, kind: RecordKind, identity: str, record: FinancialRecord) -> None:
        pass

    @abstractmethod
    async def update(self, kind: RecordKind, record: FinancialRecord) -> None:
        """Update the row matching ``record.id``."""
        pass

    @abstractmethod
    async def delete(self, kind: RecordKind, record_id: UUID, identity: str) -> None:
        pass

    @abstractmethod
    async def delete_all(self, identity: str) -> None:
        """Remove every record of both kinds for ``identity``."""
        pass

    # -- Authentication --------------------------------------------------------

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Raises:
            AuthenticationFailedError: Credentials rejected
        """
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> AuthSession:
        pass

    @abstractmethod
    def set_access_token(self, token: Optional[str]) -> None:
        """Bearer token for subsequent calls; None falls back to the anonymous key."""
        pass
