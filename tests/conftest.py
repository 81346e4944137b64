"""
Shared fixtures.

No real network or disk access: the Local Store runs on an in-memory
backend and the Remote Store is a scripted fake.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from spendwise.config import SecuritySettings, SessionSettings
from spendwise.errors import AuthenticationFailedError
from spendwise.events import EventBus
from spendwise.models import (
    Expense,
    ExpenseCategory,
    FinancialRecord,
    Income,
    IncomeCategory,
    RecordKind,
    SessionEvent,
)
from spendwise.security import BiometricAuthenticator, SecurityGate
from spendwise.services.remote import AuthSession, RemoteStoreInterface
from spendwise.services.storage import InMemoryBackend, LocalStore
from spendwise.session import SessionController


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: EventBus):
        self.events: list[SessionEvent] = []
        bus.subscribe(self.events.append)

    @property
    def types(self) -> list[str]:
        return [e.event_type.value for e in self.events]

    def of_type(self, event_type: str) -> list[SessionEvent]:
        return [e for e in self.events if e.event_type.value == event_type]


class FakeRemoteStore(RemoteStoreInterface):
    """
    In-memory remote store.

    Set ``write_error`` / ``fetch_error`` to an exception to make calls
    fail, or ``fetch_gate`` to an asyncio.Event to hold fetches open.
    """

    def __init__(self):
        self.rows: dict[tuple[RecordKind, str], list[FinancialRecord]] = {}
        self.accounts: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.write_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.access_token: Optional[str] = None

    def seed(self, kind: RecordKind, identity: str, records: list[FinancialRecord]) -> None:
        self.rows[(kind, identity)] = list(records)

    async def fetch(self, kind, identity):
        self.calls.append(("fetch", kind, identity))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return sorted(self.rows.get((kind, identity), []), key=lambda r: r.occurred_at, reverse=True)

    async def create(self, kind, identity, record):
        self.calls.append(("create", kind, identity, record.id))
        await asyncio.sleep(0)
        if self.write_error is not None:
            raise self.write_error
        self.rows.setdefault((kind, identity), []).append(record)

    async def update(self, kind, record):
        self.calls.append(("update", kind, record.id))
        await asyncio.sleep(0)
        if self.write_error is not None:
            raise self.write_error
        for (row_kind, _), records in self.rows.items():
            if row_kind is kind:
                for i, existing in enumerate(records):
                    if existing.id == record.id:
                        records[i] = record

    async def delete(self, kind, record_id: UUID, identity):
        self.calls.append(("delete", kind, record_id, identity))
        await asyncio.sleep(0)
        if self.write_error is not None:
            raise self.write_error
        records = self.rows.get((kind, identity), [])
        self.rows[(kind, identity)] = [r for r in records if r.id != record_id]

    async def delete_all(self, identity):
        self.calls.append(("delete_all", identity))
        if self.write_error is not None:
            raise self.write_error
        for kind in RecordKind:
            self.rows.pop((kind, identity), None)

    async def sign_in(self, email, password):
        self.calls.append(("sign_in", email))
        if self.accounts.get(email) != password:
            raise AuthenticationFailedError()
        return AuthSession(email=email, access_token=f"token-{email}")

    async def sign_up(self, email, password, display_name=None):
        self.calls.append(("sign_up", email))
        self.accounts[email] = password
        return AuthSession(email=email, access_token=f"token-{email}", display_name=display_name)

    def set_access_token(self, token):
        self.access_token = token


class FakeBiometric(BiometricAuthenticator):
    def __init__(self, result: bool = True, available: bool = True):
        self.result = result
        self.available = available
        self.prompts: list[str] = []

    async def is_available(self) -> bool:
        return self.available

    async def authenticate(self, reason: str) -> bool:
        self.prompts.append(reason)
        return self.result


def make_income(
    amount: str = "100",
    title: str = "Salary",
    occurred_at: datetime = NOW,
    category: IncomeCategory = IncomeCategory.SALARY,
    **kwargs,
) -> Income:
    return Income(title=title, amount=Decimal(amount), occurred_at=occurred_at, category=category, **kwargs)


def make_expense(
    amount: str = "50",
    title: str = "Groceries",
    occurred_at: datetime = NOW,
    category: ExpenseCategory = ExpenseCategory.FOOD,
    **kwargs,
) -> Expense:
    return Expense(title=title, amount=Decimal(amount), occurred_at=occurred_at, category=category, **kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def local_store(backend) -> LocalStore:
    return LocalStore(backend)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(events) -> EventRecorder:
    return EventRecorder(events)


@pytest.fixture
def remote() -> FakeRemoteStore:
    store = FakeRemoteStore()
    store.accounts["ada@example.com"] = "correct horse"
    return store


@pytest.fixture
def biometric() -> FakeBiometric:
    return FakeBiometric()


@pytest.fixture
def security_gate(local_store, biometric, events) -> SecurityGate:
    return SecurityGate(
        local_store,
        biometric=biometric,
        events=events,
        settings=SecuritySettings(attempt_warning_threshold=5),
    )


@pytest.fixture
def make_controller(local_store, remote, security_gate, events, clock):
    """Build controllers sharing the same store, remote and clock (a relaunch)."""

    def factory(**overrides) -> SessionController:
        params = dict(
            local_store=local_store,
            remote=remote,
            security_gate=security_gate,
            events=events,
            settings=SessionSettings(guest_data_ttl_days=7, purge_guest_on_background=True),
            clock=clock,
        )
        params.update(overrides)
        return SessionController(**params)

    return factory


@pytest.fixture
def controller(make_controller) -> SessionController:
    return make_controller()
