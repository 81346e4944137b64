"""Tests for the session event bus and the application wiring."""

from conftest import make_income
from spendwise.config import Settings
from spendwise.events import EventBus
from spendwise.models import RecordKind, SessionEventBuilder, SessionEventType
from spendwise.orchestrator import create_app_components
from spendwise.services.storage import InMemoryBackend


class TestEventBus:
    """Tests for subscription and delivery."""

    def test_delivers_to_all_subscribers(self):
        bus = EventBus()
        received_a, received_b = [], []
        bus.subscribe(received_a.append)
        bus.subscribe(received_b.append)

        event = SessionEventBuilder.guest_data_purged("background")
        bus.emit(event)

        assert received_a == [event]
        assert received_b == [event]

    def test_filters_by_event_type(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append, event_types=[SessionEventType.SECURITY_LOCKED])

        bus.emit(SessionEventBuilder.guest_data_purged("background"))
        bus.emit(SessionEventBuilder.security_locked("password"))

        assert [e.event_type for e in received] == [SessionEventType.SECURITY_LOCKED]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        bus.emit(SessionEventBuilder.recommendations_updated(2))
        assert received == []
        assert bus.subscriber_count == 0

    def test_subscriber_failure_is_isolated(self):
        """Test that a failing subscriber does not stop delivery or raise."""
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("consumer bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.emit(SessionEventBuilder.configuration_error("bad url"))

        assert len(received) == 1


class TestOrchestrator:
    """Tests for component wiring."""

    async def test_components_share_store_and_bus(self):
        components = create_app_components(
            settings=Settings(),
            backend=InMemoryBackend(),
            use_remote=False,
        )
        assert components.remote is None
        assert components.cloud_mirror is None

        received = []
        components.events.subscribe(received.append, event_types=[SessionEventType.RECORDS_CHANGED])
        await components.session.launch()
        task = components.session.add_record(make_income("10"))

        assert task is None
        assert len(received) == 1
        assert components.session.current_user.is_guest
        assert components.local_store.load_user() == components.session.current_user
        assert len(components.local_store.load_records(RecordKind.INCOMES, "guest")) == 1
