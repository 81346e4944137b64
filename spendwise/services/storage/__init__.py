"""
Storage Services Package

Provides abstract interfaces and concrete implementations for on-device
persistence. Backends are swappable: in-memory for tests, a JSON document
on disk for real use.
"""

from spendwise.services.storage.interface import (
    KeyValueBackend,
    LocalStoreInterface,
)
from spendwise.services.storage.backends import (
    InMemoryBackend,
    JsonFileBackend,
)
from spendwise.services.storage.local_store import (
    LocalStore,
    records_slot,
)
from spendwise.services.storage.cloud_mirror import CloudMirror

__all__ = [
    # Interfaces
    "KeyValueBackend",
    "LocalStoreInterface",
    # Backends
    "InMemoryBackend",
    "JsonFileBackend",
    # Local Store
    "LocalStore",
    "records_slot",
    # Cloud mirror
    "CloudMirror",
]
