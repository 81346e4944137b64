"""
Abstract Storage Interfaces

DESIGN DECISION: Local persistence is split in two layers:
1. KeyValueBackend - raw string slots (in-memory dict, JSON file, cloud
   key-value mirror)
2. LocalStoreInterface - typed records, user, preferences and guest
   marker on top of any backend

This allows us to use in-memory storage for testing and to point the
cloud mirror at a different backend without changing the session layer.

All Local Store operations are synchronous and never raise for
persistence problems: a slot that cannot be read is "no data", a slot
that cannot be written is a logged no-op.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional, Sequence
from uuid import UUID

from spendwise.models.preferences import AppTheme, Preference, SecurityMode
from spendwise.models.records import Currency, FinancialRecord, PendingWrite, RecordKind
from spendwise.models.user import GuestSessionMarker, StorageKey, User


class KeyValueBackend(ABC):
    """
    Raw string slot storage.

    Implementations may raise StorageError (or OSError) on I/O failure;
    the Local Store absorbs those.
    """

    @abstractmethod
    def get(self, slot: str) -> Optional[str]:
        """Return the slot's content, or None if absent."""
        pass

    @abstractmethod
    def set(self, slot: str, value: str) -> None:
        """Overwrite the slot."""
        pass

    @abstractmethod
    def delete(self, slot: str) -> None:
        """Remove the slot. Missing slots are ignored."""
        pass

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Iterate over the names of all stored slots."""
        pass


class LocalStoreInterface(ABC):
    """
    Abstract interface for on-device persistence.

    Record collections are keyed by StorageKey; the user slot and all
    preferences are global.
    """

    # -- Records ---------------------------------------------------------------

    @abstractmethod
    def load_records(self, kind: RecordKind, key: StorageKey) -> list[FinancialRecord]:
        """
        Load the ordered collection of ``kind`` stored under ``key``.

        Returns:
            The records, or an empty list if nothing (readable) is stored
        """
        pass

    @abstractmethod
    def save_records(
        self,
        kind: RecordKind,
        key: StorageKey,
        records: Sequence[FinancialRecord],
    ) -> None:
        """
        Overwrite the whole collection of ``kind`` under ``key``.

        At most one writer per slot at a time.
        """
        pass

    @abstractmethod
    def clear_all(self, key: StorageKey) -> None:
        """Empty both record collections and the pending write queue under ``key``."""
        pass

    # -- Pending remote writes -------------------------------------------------

    @abstractmethod
    def load_pending_writes(self, key: StorageKey) -> list[PendingWrite]:
        """Unconfirmed remote writes for ``key``, oldest first."""
        pass

    @abstractmethod
    def save_pending_writes(self, key: StorageKey, writes: Sequence[PendingWrite]) -> None:
        """Overwrite the queue; an empty sequence removes the slot."""
        pass

    def enqueue_pending_write(self, key: StorageKey, write: PendingWrite) -> None:
        self.save_pending_writes(key, [*self.load_pending_writes(key), write])

    def remove_pending_write(self, key: StorageKey, write_id: UUID) -> None:
        writes = self.load_pending_writes(key)
        remaining = [w for w in writes if w.write_id != write_id]
        if len(remaining) != len(writes):
            self.save_pending_writes(key, remaining)

    # -- User ------------------------------------------------------------------

    @abstractmethod
    def load_user(self) -> Optional[User]:
        pass

    @abstractmethod
    def save_user(self, user: Optional[User]) -> None:
        """Persist the current user; None clears the slot."""
        pass

    # -- Preferences -----------------------------------------------------------

    @abstractmethod
    def load_preference(self, name: Preference, default: Any = None) -> Any:
        pass

    @abstractmethod
    def save_preference(self, name: Preference, value: Any) -> None:
        """Persist a JSON scalar; None removes the slot."""
        pass

    # -- Guest marker ----------------------------------------------------------

    @abstractmethod
    def load_guest_marker(self) -> GuestSessionMarker:
        pass

    @abstractmethod
    def save_guest_marker(self, marker: GuestSessionMarker) -> None:
        pass

    @abstractmethod
    def clear_guest_marker(self) -> None:
        pass

    # -- Typed preference helpers ----------------------------------------------

    def load_monthly_limit(self) -> Optional[Decimal]:
        """The configured monthly spending limit; None if unset or not positive."""
        raw = self.load_preference(Preference.MONTHLY_LIMIT)
        if raw is None:
            return None
        try:
            limit = Decimal(str(raw))
        except ArithmeticError:
            return None
        return limit if limit > 0 else None

    def save_monthly_limit(self, limit: Optional[Decimal]) -> None:
        self.save_preference(
            Preference.MONTHLY_LIMIT,
            str(limit) if limit is not None else None,
        )

    def load_default_currency(self) -> Currency:
        return _enum_or_default(Currency, self.load_preference(Preference.DEFAULT_CURRENCY), Currency.TRY)

    def save_default_currency(self, currency: Currency) -> None:
        self.save_preference(Preference.DEFAULT_CURRENCY, currency.value)

    def load_security_mode(self) -> SecurityMode:
        return _enum_or_default(SecurityMode, self.load_preference(Preference.SECURITY_TYPE), SecurityMode.NONE)

    def save_security_mode(self, mode: SecurityMode) -> None:
        self.save_preference(Preference.SECURITY_TYPE, mode.value)

    def load_security_password_hash(self) -> Optional[str]:
        return self.load_preference(Preference.SECURITY_PASSWORD_HASH)

    def save_security_password_hash(self, password_hash: Optional[str]) -> None:
        self.save_preference(Preference.SECURITY_PASSWORD_HASH, password_hash)

    def load_recommendations_enabled(self) -> bool:
        return bool(self.load_preference(Preference.RECOMMENDATIONS_ENABLED, False))

    def save_recommendations_enabled(self, enabled: bool) -> None:
        self.save_preference(Preference.RECOMMENDATIONS_ENABLED, bool(enabled))

    def load_app_theme(self) -> AppTheme:
        return _enum_or_default(AppTheme, self.load_preference(Preference.APP_THEME), AppTheme.SYSTEM)

    def save_app_theme(self, theme: AppTheme) -> None:
        self.save_preference(Preference.APP_THEME, theme.value)

    def load_auth_token(self) -> Optional[str]:
        return self.load_preference(Preference.AUTH_TOKEN)

    def save_auth_token(self, token: Optional[str]) -> None:
        self.save_preference(Preference.AUTH_TOKEN, token)

    def load_last_cloud_backup_at(self) -> Optional[datetime]:
        raw = self.load_preference(Preference.LAST_CLOUD_BACKUP_AT)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            return None

    def save_last_cloud_backup_at(self, when: datetime) -> None:
        self.save_preference(Preference.LAST_CLOUD_BACKUP_AT, when.isoformat())


def _enum_or_default(enum_cls, raw, default):
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        return default
