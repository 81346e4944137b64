"""
Local Store Implementation

Typed persistence on top of a KeyValueBackend.

Slot layout:
- ``currentUser``                 serialized User (global)
- ``incomes_<key>``               JSON array of Income for a StorageKey
- ``expenses_<key>``              JSON array of Expense for a StorageKey
- one slot per Preference         JSON scalar (global)
- ``pendingWrites_<key>``         JSON array of PendingWrite for a StorageKey
- ``guestCreatedAt``, ``lastSessionWasGuest``, ``clearGuestOnLaunch``

Failure semantics: a slot that cannot be deserialized is logged as
DataCorruptionError and read as empty; a write that fails is logged and
dropped. Nothing here raises for persistence problems.
"""

import json
import threading
from datetime import datetime
from typing import Any, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from spendwise.errors import DataCorruptionError, StorageError
from spendwise.log import get_logger
from spendwise.models.preferences import Preference
from spendwise.models.records import Expense, FinancialRecord, Income, PendingWrite, RecordKind
from spendwise.models.user import GuestSessionMarker, StorageKey, User
from spendwise.services.storage.interface import KeyValueBackend, LocalStoreInterface


logger = get_logger(__name__)

USER_SLOT = "currentUser"
GUEST_CREATED_AT_SLOT = "guestCreatedAt"
LAST_SESSION_GUEST_SLOT = "lastSessionWasGuest"
CLEAR_GUEST_ON_LAUNCH_SLOT = "clearGuestOnLaunch"

_RECORD_ADAPTERS: dict[RecordKind, TypeAdapter] = {
    RecordKind.INCOMES: TypeAdapter(list[Income]),
    RecordKind.EXPENSES: TypeAdapter(list[Expense]),
}
_PENDING_WRITES_ADAPTER = TypeAdapter(list[PendingWrite])


def records_slot(kind: RecordKind, key: StorageKey) -> str:
    """Slot name of a record collection, e.g. ``expenses_guest``."""
    return f"{kind.value}_{key}"


def pending_writes_slot(key: StorageKey) -> str:
    return f"pendingWrites_{key}"


class LocalStore(LocalStoreInterface):
    """
    Local Store over any key-value backend.

    Writes to the same slot are serialized with a per-slot lock.
    """

    def __init__(self, backend: KeyValueBackend):
        self._backend = backend
        self._slot_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    def _lock_for(self, slot: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._slot_locks.get(slot)
            if lock is None:
                lock = threading.Lock()
                self._slot_locks[slot] = lock
            return lock

    # -- Raw slot access -------------------------------------------------------

    def _read(self, slot: str) -> Optional[str]:
        try:
            return self._backend.get(slot)
        except (StorageError, OSError) as e:
            logger.warning("local_read_failed", slot=slot, error=str(e))
            return None

    def _write(self, slot: str, value: Optional[str]) -> None:
        with self._lock_for(slot):
            try:
                if value is None:
                    self._backend.delete(slot)
                else:
                    self._backend.set(slot, value)
            except (StorageError, OSError) as e:
                logger.error("local_write_failed", slot=slot, error=str(e))

    def _report_corruption(self, slot: str, error: Exception) -> None:
        corruption = DataCorruptionError(slot, str(error))
        logger.warning("local_data_corrupt", slot=slot, error=str(corruption))

    # -- Records ---------------------------------------------------------------

    def load_records(self, kind: RecordKind, key: StorageKey) -> list[FinancialRecord]:
        slot = records_slot(kind, key)
        raw = self._read(slot)
        if raw is None:
            return []
        try:
            return list(_RECORD_ADAPTERS[kind].validate_json(raw))
        except (ValidationError, ValueError) as e:
            self._report_corruption(slot, e)
            return []

    def save_records(
        self,
        kind: RecordKind,
        key: StorageKey,
        records: Sequence[FinancialRecord],
    ) -> None:
        slot = records_slot(kind, key)
        model = kind.record_model
        wrong = [r for r in records if not isinstance(r, model)]
        if wrong:
            logger.error(
                "local_write_failed",
                slot=slot,
                error=f"expected {model.__name__}, got {type(wrong[0]).__name__}",
            )
            return
        try:
            payload = _RECORD_ADAPTERS[kind].dump_json(list(records)).decode("utf-8")
        except (ValueError, TypeError) as e:
            logger.error("local_write_failed", slot=slot, error=str(e))
            return
        self._write(slot, payload)
        logger.debug("local_records_saved", slot=slot, count=len(records))

    def clear_all(self, key: StorageKey) -> None:
        self.save_records(RecordKind.INCOMES, key, [])
        self.save_records(RecordKind.EXPENSES, key, [])
        self.save_pending_writes(key, [])

    # -- Pending remote writes -------------------------------------------------

    def load_pending_writes(self, key: StorageKey) -> list[PendingWrite]:
        slot = pending_writes_slot(key)
        raw = self._read(slot)
        if raw is None:
            return []
        try:
            return list(_PENDING_WRITES_ADAPTER.validate_json(raw))
        except (ValidationError, ValueError) as e:
            self._report_corruption(slot, e)
            return []

    def save_pending_writes(self, key: StorageKey, writes: Sequence[PendingWrite]) -> None:
        slot = pending_writes_slot(key)
        if not writes:
            self._write(slot, None)
            return
        self._write(slot, _PENDING_WRITES_ADAPTER.dump_json(list(writes)).decode("utf-8"))

    # -- User ------------------------------------------------------------------

    def load_user(self) -> Optional[User]:
        raw = self._read(USER_SLOT)
        if raw is None:
            return None
        try:
            return User.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            self._report_corruption(USER_SLOT, e)
            return None

    def save_user(self, user: Optional[User]) -> None:
        self._write(USER_SLOT, user.model_dump_json() if user is not None else None)

    # -- Preferences -----------------------------------------------------------

    def load_preference(self, name: Preference, default: Any = None) -> Any:
        slot = Preference(name).value
        raw = self._read(slot)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            self._report_corruption(slot, e)
            return default

    def save_preference(self, name: Preference, value: Any) -> None:
        slot = Preference(name).value
        if value is None:
            self._write(slot, None)
            return
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("local_write_failed", slot=slot, error=str(e))
            return
        self._write(slot, payload)

    # -- Guest marker ----------------------------------------------------------

    def load_guest_marker(self) -> GuestSessionMarker:
        created_at = None
        raw_created = self._read(GUEST_CREATED_AT_SLOT)
        if raw_created:
            try:
                created_at = datetime.fromisoformat(json.loads(raw_created))
            except (TypeError, ValueError) as e:
                self._report_corruption(GUEST_CREATED_AT_SLOT, e)

        return GuestSessionMarker(
            created_at=created_at,
            last_session_was_guest=self._read_flag(LAST_SESSION_GUEST_SLOT),
            clear_on_next_launch=self._read_flag(CLEAR_GUEST_ON_LAUNCH_SLOT),
        )

    def _read_flag(self, slot: str) -> bool:
        raw = self._read(slot)
        if raw is None:
            return False
        try:
            return bool(json.loads(raw))
        except ValueError as e:
            self._report_corruption(slot, e)
            return False

    def save_guest_marker(self, marker: GuestSessionMarker) -> None:
        self._write(
            GUEST_CREATED_AT_SLOT,
            json.dumps(marker.created_at.isoformat()) if marker.created_at else None,
        )
        self._write(LAST_SESSION_GUEST_SLOT, json.dumps(marker.last_session_was_guest))
        self._write(CLEAR_GUEST_ON_LAUNCH_SLOT, json.dumps(marker.clear_on_next_launch))

    def clear_guest_marker(self) -> None:
        for slot in (GUEST_CREATED_AT_SLOT, LAST_SESSION_GUEST_SLOT, CLEAR_GUEST_ON_LAUNCH_SLOT):
            self._write(slot, None)
