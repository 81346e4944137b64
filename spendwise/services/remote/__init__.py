"""
Remote Store Package

Async client for the hosted backend that mirrors authenticated users'
records.
"""

from spendwise.services.remote.interface import AuthSession, RemoteStoreInterface
from spendwise.services.remote.rest_client import (
    RestRemoteStore,
    record_to_row,
    row_to_record,
)

__all__ = [
    # Interface
    "AuthSession",
    "RemoteStoreInterface",
    # REST implementation
    "RestRemoteStore",
    "record_to_row",
    "row_to_record",
]
