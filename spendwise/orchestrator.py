"""
Main Orchestrator for SpendWise

Ties the components together in dependency order:

    backend -> LocalStore -> RemoteStore -> EventBus -> SecurityGate
            -> SessionController -> RecommendationService

DESIGN DECISION: The orchestrator is the only place that reads the
storage and remote settings to pick implementations. Everything below it
receives its collaborators explicitly, so tests build the same graph
from fakes.
"""

from dataclasses import dataclass
from typing import Optional

from spendwise.config import Settings, get_settings
from spendwise.events import EventBus
from spendwise.log import configure_log_level, get_logger
from spendwise.recommendations import RecommendationService
from spendwise.security import BiometricAuthenticator, SecurityGate
from spendwise.services.currency import CurrencyConverter
from spendwise.services.remote import RemoteStoreInterface, RestRemoteStore
from spendwise.services.storage import (
    CloudMirror,
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    LocalStore,
)
from spendwise.session import IdentityService, SessionController


logger = get_logger(__name__)


@dataclass
class AppComponents:
    """Everything a front end needs, wired together."""

    local_store: LocalStore
    remote: Optional[RemoteStoreInterface]
    events: EventBus
    security_gate: SecurityGate
    session: SessionController
    recommendations: RecommendationService
    currency: CurrencyConverter
    cloud_mirror: Optional[CloudMirror] = None


def _build_backend(settings: Settings) -> KeyValueBackend:
    storage = settings.storage
    if storage.backend == "file":
        return JsonFileBackend(storage.data_path)
    return InMemoryBackend()


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[KeyValueBackend] = None,
    remote: Optional[RemoteStoreInterface] = None,
    biometric: Optional[BiometricAuthenticator] = None,
    use_remote: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Defaults to the cached environment settings
        backend: Key-value backend; built from storage settings if omitted
        remote: Remote store; a RestRemoteStore if omitted
        biometric: Platform biometric authenticator, if any
        use_remote: Set to False to run fully local (no sign-in)

    Returns:
        AppComponents; call ``await components.session.launch()`` next.
    """
    settings = settings or get_settings()
    configure_log_level(settings.app.log_level)

    local_store = LocalStore(backend or _build_backend(settings))

    if remote is None and use_remote:
        remote = RestRemoteStore(settings.remote)

    events = EventBus()
    security_gate = SecurityGate(
        local_store,
        biometric=biometric,
        events=events,
        settings=settings.security,
    )
    session = SessionController(
        local_store,
        remote,
        security_gate,
        events,
        identity=IdentityService(local_store),
        settings=settings.session,
    )
    currency = CurrencyConverter(settings.currency)
    recommendations = RecommendationService(local_store, events, converter=currency)

    cloud_mirror = None
    if settings.storage.cloud_mirror_path:
        cloud_mirror = CloudMirror(local_store, JsonFileBackend(settings.storage.cloud_mirror_path))

    logger.info(
        "app_components_created",
        storage_backend=type(local_store.backend).__name__,
        remote_enabled=remote is not None,
        cloud_mirror=cloud_mirror is not None,
    )

    return AppComponents(
        local_store=local_store,
        remote=remote,
        events=events,
        security_gate=security_gate,
        session=session,
        recommendations=recommendations,
        currency=currency,
        cloud_mirror=cloud_mirror,
    )
