"""
Session Lifecycle Controller

The single owner of the current session: who the user is, which
partition of the Local Store is live, and the in-memory record
collections served to consumers.

DESIGN DECISION: Local-first.
1. Every mutation is applied in memory and written to the Local Store
   before anything else happens
2. For authenticated users the matching remote call then runs as a
   background task (returned to the caller, who may await it)
3. Each remote write is queued in the Local Store until the remote
   store confirms it. A failure never rolls back the local change; it is
   reported as a ``remote_sync_failed`` event and the write is replayed
   before the next refresh

Guest data is ephemeral: it is purged when the app goes to the
background, and on read or launch once it is older than the guest TTL.

Concurrency model: one asyncio event loop owns the controller. Remote
fetches that complete after the storage key changed, or after a local
mutation, are discarded.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional
from uuid import UUID

from spendwise.config import SessionSettings, get_settings
from spendwise.errors import (
    AuthenticationFailedError,
    ConfigurationError,
    RemoteStoreError,
    SecurityLockedError,
    ServerError,
    SyncError,
    is_transport_failure,
)
from spendwise.events import EventBus
from spendwise.log import get_logger
from spendwise.models.events import SessionEvent, SessionEventBuilder
from spendwise.models.records import (
    Expense,
    FinancialRecord,
    Income,
    PendingWrite,
    RecordKind,
    WriteOperation,
)
from spendwise.models.user import GUEST_STORAGE_KEY, StorageKey, User
from spendwise.security.gate import SecurityGate
from spendwise.services.remote.interface import RemoteStoreInterface
from spendwise.services.storage.interface import LocalStoreInterface
from spendwise.session.identity import IdentityService


logger = get_logger(__name__)


class SessionState(str, Enum):
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class SessionController:
    """
    Owns identity transitions, record collections and remote sync.

    Mutations must be called from the event loop that owns the
    controller when the user is authenticated (they schedule tasks).
    """

    def __init__(
        self,
        local_store: LocalStoreInterface,
        remote: Optional[RemoteStoreInterface],
        security_gate: SecurityGate,
        events: EventBus,
        identity: Optional[IdentityService] = None,
        settings: Optional[SessionSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._local = local_store
        self._remote = remote
        self._gate = security_gate
        self._events = events
        self._identity = identity or IdentityService(local_store)
        self._settings = settings or get_settings().session
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._user: Optional[User] = None
        self._collections: dict[RecordKind, list[FinancialRecord]] = {kind: [] for kind in RecordKind}
        self._pending: set[asyncio.Task] = set()
        self._mutations = 0
        self._remote_disabled = False
        self._auth_attempts = 0

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def guest_ttl(self) -> timedelta:
        return timedelta(days=self._settings.guest_data_ttl_days)

    @property
    def current_user(self) -> User:
        if self._user is None:
            self._user = self._identity.load_current_user()
        return self._user

    @property
    def storage_key(self) -> StorageKey:
        return self._identity.derive_storage_key(self.current_user)

    @property
    def state(self) -> SessionState:
        return SessionState.GUEST if self.current_user.is_guest else SessionState.AUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def remote_enabled(self) -> bool:
        return self._remote is not None and not self._remote_disabled

    @property
    def pending_sync_count(self) -> int:
        return len(self._pending)

    def ensure_unlocked(self) -> None:
        """
        Raises:
            SecurityLockedError: The security gate is configured and locked
        """
        if not self._gate.is_satisfied():
            raise SecurityLockedError("Unlock the app to access your data")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def launch(self) -> User:
        """
        Start a session.

        Purges stale guest data, locks the gate when a lock is configured,
        loads the live partition and, for authenticated users, refreshes
        it from the remote store (keeping the local cache on failure).
        """
        user = self._identity.load_current_user()
        now = self._clock()
        marker = self._local.load_guest_marker()

        if marker.needs_launch_purge(now, self.guest_ttl):
            expired = marker.is_expired(now, self.guest_ttl)
            self._purge_guest_data("expired" if expired else "previous_guest_session")
            if user.is_guest and expired:
                user = User.guest()
                self._identity.save_current_user(user)

        self._user = user
        self._gate.lock()
        self._load_local()

        logger.info(
            "session_launched",
            state=self.state.value,
            storage_key=self.storage_key,
            locked=not self._gate.is_satisfied(),
        )

        if self.is_authenticated:
            if self._remote is not None:
                self._remote.set_access_token(self._local.load_auth_token())
            await self.refresh()

        return user

    def on_background(self) -> None:
        """Purge guest data and lock the gate."""
        if not self.current_user.is_guest:
            self._gate.lock()
            return

        if self._settings.purge_guest_on_background:
            self._collections = {kind: [] for kind in RecordKind}
            self._local.clear_all(GUEST_STORAGE_KEY)
            marker = self._local.load_guest_marker()
            self._local.save_guest_marker(marker.model_copy(update={
                "created_at": None,
                "last_session_was_guest": True,
                "clear_on_next_launch": True,
            }))
            self._emit(SessionEventBuilder.guest_data_purged("background"))
        self._gate.lock()

    def on_foreground(self) -> bool:
        """
        Returns:
            Whether data may be shown without unlocking first
        """
        satisfied = self._gate.is_satisfied()
        logger.debug("session_foregrounded", locked=not satisfied)
        return satisfied

    # =========================================================================
    # READS
    # =========================================================================

    def records(self, kind: RecordKind) -> tuple[FinancialRecord, ...]:
        self.ensure_unlocked()
        self._enforce_guest_expiry()
        return tuple(self._collections[kind])

    @property
    def incomes(self) -> tuple[Income, ...]:
        return self.records(RecordKind.INCOMES)

    @property
    def expenses(self) -> tuple[Expense, ...]:
        return self.records(RecordKind.EXPENSES)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_record(self, record: FinancialRecord) -> Optional[asyncio.Task]:
        """
        Append a record to its collection.

        Returns:
            The background remote task for authenticated users, else None

        Raises:
            ValueError: A record with the same id already exists
        """
        self.ensure_unlocked()
        self._enforce_guest_expiry()
        kind = record.kind
        collection = self._collections[kind]
        if any(r.id == record.id for r in collection):
            raise ValueError(f"Record {record.id} already exists")

        collection.append(record)
        self._commit(kind, "add", record.id)
        return self._schedule_remote(
            WriteOperation.CREATE, kind, record.id,
            lambda remote, identity: remote.create(kind, identity, record),
        )

    def update_record(self, record: FinancialRecord) -> Optional[asyncio.Task]:
        """
        Replace the record with the same id.

        Raises:
            KeyError: No record with that id
        """
        self.ensure_unlocked()
        self._enforce_guest_expiry()
        kind = record.kind
        collection = self._collections[kind]
        index = self._index_of(collection, record.id)
        if index is None:
            raise KeyError(str(record.id))

        collection[index] = record
        self._commit(kind, "update", record.id)
        return self._schedule_remote(
            WriteOperation.UPDATE, kind, record.id,
            lambda remote, identity: remote.update(kind, record),
        )

    def delete_record(self, kind: RecordKind, record_id: UUID) -> Optional[asyncio.Task]:
        """Remove a record. Unknown ids are ignored."""
        self.ensure_unlocked()
        self._enforce_guest_expiry()
        collection = self._collections[kind]
        index = self._index_of(collection, record_id)
        if index is None:
            logger.debug("delete_unknown_record", kind=kind.value, record_id=str(record_id))
            return None

        del collection[index]
        self._commit(kind, "delete", record_id)
        return self._schedule_remote(
            WriteOperation.DELETE, kind, record_id,
            lambda remote, identity: remote.delete(kind, record_id, identity),
        )

    def update_profile(
        self,
        display_name: Optional[str] = None,
        avatar: Optional[bytes] = None,
    ) -> User:
        self.ensure_unlocked()
        user = self.current_user.with_profile(display_name=display_name, avatar=avatar)
        self._user = user
        self._identity.save_current_user(user)
        logger.info("profile_updated", storage_key=self.storage_key)
        return user

    @staticmethod
    def _index_of(collection: list[FinancialRecord], record_id: UUID) -> Optional[int]:
        for i, existing in enumerate(collection):
            if existing.id == record_id:
                return i
        return None

    def _commit(self, kind: RecordKind, action: str, record_id: UUID) -> None:
        key = self.storage_key
        self._mutations += 1
        self._local.save_records(kind, key, self._collections[kind])
        if self.current_user.is_guest:
            self._touch_guest_marker()
        self._emit(SessionEventBuilder.records_changed(key, kind.value, action, record_id=record_id))

    def _touch_guest_marker(self) -> None:
        marker = self._local.load_guest_marker()
        if marker.created_at is None:
            self._local.save_guest_marker(marker.model_copy(update={"created_at": self._clock()}))

    # =========================================================================
    # IDENTITY TRANSITIONS
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> User:
        """
        Authenticate and switch to the user's partition.

        Raises:
            AuthenticationFailedError: Credentials rejected (carries the attempt count)
            RemoteStoreError: Remote store unreachable or misconfigured
        """
        remote = self._require_remote()
        try:
            session = await remote.sign_in(email, password)
        except AuthenticationFailedError as e:
            raise self._auth_failure(e) from e
        except ConfigurationError as e:
            self._disable_remote(e)
            raise

        user = User.authenticated(session.email, display_name=session.display_name)
        await self._become_authenticated(user, session.access_token, "sign_in")
        return user

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> User:
        remote = self._require_remote()
        try:
            session = await remote.sign_up(email, password, display_name)
        except AuthenticationFailedError as e:
            raise self._auth_failure(e) from e
        except ConfigurationError as e:
            self._disable_remote(e)
            raise

        user = User.authenticated(session.email, display_name=session.display_name or display_name)
        await self._become_authenticated(user, session.access_token, "sign_up")
        return user

    async def sign_out(self) -> User:
        """Return to a fresh guest session, clearing the signed-out user's local cache."""
        if not self.is_authenticated:
            return self.current_user
        return self._become_guest("sign_out")

    async def delete_account(self) -> User:
        """
        Remove the user's remote records (best effort), then sign out.

        For a guest this simply purges guest data.
        """
        if not self.is_authenticated:
            self._purge_guest_data("account_deleted")
            return self.current_user

        key = self.storage_key
        if self.remote_enabled:
            try:
                await self._remote.delete_all(key)
            except ConfigurationError as e:
                self._disable_remote(e)
            except RemoteStoreError as e:
                logger.warning("remote_delete_all_failed", storage_key=key, error=str(e))
                self._emit(SessionEventBuilder.remote_sync_failed(key, "delete_all", str(e)))
        return self._become_guest("delete_account")

    def _require_remote(self) -> RemoteStoreInterface:
        if self._remote is None or self._remote_disabled:
            raise ConfigurationError("Remote store is not available; sign-in is disabled")
        return self._remote

    def _auth_failure(self, error: AuthenticationFailedError) -> AuthenticationFailedError:
        self._auth_attempts += 1
        logger.info("sign_in_rejected", attempts=self._auth_attempts)
        return AuthenticationFailedError(error.message, attempts=self._auth_attempts)

    async def _become_authenticated(self, user: User, token: Optional[str], reason: str) -> None:
        previous_key = self.storage_key
        self._auth_attempts = 0

        # Guest records are never carried into an account.
        self._local.clear_all(GUEST_STORAGE_KEY)
        self._local.clear_guest_marker()

        self._user = user
        self._identity.save_current_user(user)
        self._local.save_auth_token(token)
        if self._remote is not None:
            self._remote.set_access_token(token)

        self._collections = {kind: [] for kind in RecordKind}
        self._load_local()
        self._emit(SessionEventBuilder.identity_changed(previous_key, self.storage_key, False, reason))
        await self.refresh()

    def _become_guest(self, reason: str) -> User:
        previous_key = self.storage_key
        self._local.clear_all(previous_key)
        self._local.save_auth_token(None)
        if self._remote is not None:
            self._remote.set_access_token(None)

        user = User.guest()
        self._user = user
        self._identity.save_current_user(user)
        self._collections = {kind: [] for kind in RecordKind}
        self._load_local()
        self._emit(SessionEventBuilder.identity_changed(previous_key, self.storage_key, True, reason))
        return user

    # =========================================================================
    # GUEST DATA
    # =========================================================================

    def _enforce_guest_expiry(self) -> None:
        if not self.current_user.is_guest:
            return
        marker = self._local.load_guest_marker()
        if marker.is_expired(self._clock(), self.guest_ttl):
            self._purge_guest_data("expired")

    def _purge_guest_data(self, reason: str) -> None:
        self._local.clear_all(GUEST_STORAGE_KEY)
        self._local.clear_guest_marker()
        if self._user is not None and self._user.is_guest:
            self._collections = {kind: [] for kind in RecordKind}
        self._emit(SessionEventBuilder.guest_data_purged(reason))

    def _load_local(self) -> None:
        if self.current_user.is_guest:
            self._enforce_guest_expiry()
        key = self.storage_key
        for kind in RecordKind:
            self._collections[kind] = list(self._local.load_records(kind, key))

    # =========================================================================
    # REMOTE SYNC
    # =========================================================================

    @property
    def unsynced_write_count(self) -> int:
        """Remote writes for the live partition not yet confirmed by the remote store."""
        if not self.is_authenticated:
            return 0
        return len(self._local.load_pending_writes(self.storage_key))

    def _schedule_remote(
        self,
        operation: WriteOperation,
        kind: RecordKind,
        record_id: UUID,
        call: Callable[[RemoteStoreInterface, str], Awaitable[None]],
    ) -> Optional[asyncio.Task]:
        if not self.is_authenticated or self._remote is None:
            return None

        identity = self.storage_key
        write = PendingWrite(operation=operation, kind=kind, record_id=record_id)
        self._local.enqueue_pending_write(identity, write)
        if not self.remote_enabled:
            return None

        task = asyncio.get_running_loop().create_task(self._run_remote(write, identity, call))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run_remote(
        self,
        write: PendingWrite,
        identity: str,
        call: Callable[[RemoteStoreInterface, str], Awaitable[None]],
    ) -> bool:
        """
        Run one remote write. Never raises; returns whether it succeeded.

        A failed write stays in the pending queue and is replayed by the
        next refresh.
        """
        try:
            await call(self._remote, identity)
        except ConfigurationError as e:
            self._disable_remote(e)
            return False
        except RemoteStoreError as e:
            logger.warning(
                "remote_write_failed",
                operation=write.operation.value,
                kind=write.kind.value,
                storage_key=identity,
                error=str(e),
            )
            self._emit(SessionEventBuilder.remote_sync_failed(
                identity, write.operation.value, str(e), write.kind.value
            ))
            return False
        self._local.remove_pending_write(identity, write.write_id)
        return True

    async def _replay_pending_writes(self, key: StorageKey) -> list[BaseException]:
        """
        Retry queued writes for ``key`` in order.

        Stops at the first transport failure; a write the server rejects
        stays queued and the replay moves on.
        """
        errors: list[BaseException] = []
        for write in self._local.load_pending_writes(key):
            if self.storage_key != key or not self.remote_enabled:
                break
            try:
                await self._send_pending_write(write, key)
            except ConfigurationError as e:
                self._disable_remote(e)
                errors.append(e)
                break
            except RemoteStoreError as e:
                errors.append(e)
                logger.warning(
                    "pending_write_replay_failed",
                    operation=write.operation.value,
                    kind=write.kind.value,
                    storage_key=key,
                    error=str(e),
                )
                self._emit(SessionEventBuilder.remote_sync_failed(
                    key, write.operation.value, str(e), write.kind.value
                ))
                if is_transport_failure(e):
                    break
                continue
            self._local.remove_pending_write(key, write.write_id)
            logger.info(
                "pending_write_replayed",
                operation=write.operation.value,
                kind=write.kind.value,
                record_id=str(write.record_id),
            )
        return errors

    async def _send_pending_write(self, write: PendingWrite, key: StorageKey) -> None:
        if write.operation is WriteOperation.DELETE:
            await self._remote.delete(write.kind, write.record_id, key)
            return

        record = next((r for r in self._collections[write.kind] if r.id == write.record_id), None)
        if record is None:
            # Deleted locally since; the queued delete covers it.
            return
        if write.operation is WriteOperation.UPDATE:
            await self._remote.update(write.kind, record)
            return
        try:
            await self._remote.create(write.kind, key, record)
        except ServerError as e:
            # The original create landed but its response was lost.
            if e.status_code != 409:
                raise
            await self._remote.update(write.kind, record)

    async def refresh(self) -> bool:
        """
        Replay unconfirmed writes, then replace the live collections with
        the remote copy.

        Records with writes still pending keep their local state.

        Returns:
            True if the collections were replaced. False for guests, when
            the remote is unavailable or failed, or when the storage key
            changed or a local mutation landed while the fetch was in flight.
        """
        replaced, _ = await self._refresh()
        return replaced

    async def _refresh(self) -> tuple[bool, list[BaseException]]:
        if not self.is_authenticated or not self.remote_enabled:
            return False, []

        key = self.storage_key
        await self.wait_for_pending_sync()
        errors = await self._replay_pending_writes(key)
        if self.storage_key != key or not self.remote_enabled:
            return False, errors
        if any(is_transport_failure(e) for e in errors):
            logger.info("remote_fetch_skipped", storage_key=key, reason="remote_unreachable")
            return False, errors

        mutations = self._mutations
        results = await asyncio.gather(
            *(self._remote.fetch(kind, key) for kind in RecordKind),
            return_exceptions=True,
        )

        error = next((r for r in results if isinstance(r, BaseException)), None)
        if error is not None:
            if isinstance(error, ConfigurationError):
                self._disable_remote(error)
            elif isinstance(error, RemoteStoreError):
                logger.warning("remote_fetch_failed", storage_key=key, error=str(error))
                self._emit(SessionEventBuilder.remote_sync_failed(key, "fetch", str(error)))
            else:
                raise error
            return False, errors + [error]

        if self.storage_key != key:
            logger.info("remote_fetch_discarded", fetched_key=key, storage_key=self.storage_key)
            return False, errors
        if self._mutations != mutations:
            logger.info("remote_fetch_discarded", fetched_key=key, reason="local_mutation")
            return False, errors

        pending = self._local.load_pending_writes(key)
        for kind, fetched in zip(RecordKind, results):
            self._collections[kind] = self._merge_pending(kind, fetched, pending)
            self._local.save_records(kind, key, self._collections[kind])
            self._emit(SessionEventBuilder.records_changed(
                key, kind.value, "refresh", count=len(self._collections[kind])
            ))
        return True, errors

    def _merge_pending(
        self,
        kind: RecordKind,
        fetched: list[FinancialRecord],
        pending: list[PendingWrite],
    ) -> list[FinancialRecord]:
        """Overlay records with unconfirmed writes on the fetched rows."""
        writes = [w for w in pending if w.kind is kind]
        if not writes:
            return list(fetched)

        local = {r.id: r for r in self._collections[kind]}
        merged = list(fetched)
        for write in writes:
            merged = [r for r in merged if r.id != write.record_id]
            if write.operation is not WriteOperation.DELETE and write.record_id in local:
                merged.append(local[write.record_id])
        merged.sort(key=lambda r: r.occurred_at, reverse=True)
        return merged

    async def wait_for_pending_sync(self) -> None:
        """Wait until every scheduled remote write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def sync_now(self) -> None:
        """
        Flush scheduled remote writes, replay the ones that failed, then
        refresh from the remote store.

        Raises:
            SyncError: A write could not be replayed, or the refresh failed
        """
        await self.wait_for_pending_sync()

        if self.is_authenticated and self._remote is not None and self._remote_disabled:
            raise SyncError([ConfigurationError("Remote store is misconfigured")])

        _, errors = await self._refresh()
        if errors:
            raise SyncError(errors)

    def _disable_remote(self, error: ConfigurationError) -> None:
        if self._remote_disabled:
            return
        self._remote_disabled = True
        logger.error("remote_disabled", error=str(error))
        self._emit(SessionEventBuilder.configuration_error(str(error)))

    def _emit(self, event: SessionEvent) -> None:
        self._events.emit(event)
