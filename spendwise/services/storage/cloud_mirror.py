"""
Cloud Key-Value Mirror

Explicit backup and restore of one partition (the user slot and both
record slots) between the Local Store's backend and a second key-value
backend standing in for a cloud key-value store.

There is no automatic merge: the last explicit push or pull wins.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from spendwise.errors import StorageError
from spendwise.log import get_logger
from spendwise.models.records import RecordKind
from spendwise.models.user import StorageKey
from spendwise.services.storage.interface import KeyValueBackend
from spendwise.services.storage.local_store import USER_SLOT, LocalStore, records_slot


logger = get_logger(__name__)


class CloudMirror:
    """Copies slots between the local backend and a cloud backend."""

    def __init__(
        self,
        local: LocalStore,
        cloud: KeyValueBackend,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._local = local
        self._cloud = cloud
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def _slots(key: StorageKey) -> list[str]:
        return [USER_SLOT] + [records_slot(kind, key) for kind in RecordKind]

    def push(self, key: StorageKey) -> int:
        """
        Copy the partition to the cloud backend.

        Returns:
            Number of slots copied. Absent local slots are removed remotely.
        """
        copied = self._copy(self._local.backend, self._cloud, key, "push")
        self._local.save_last_cloud_backup_at(self._clock())
        return copied

    def pull(self, key: StorageKey) -> int:
        """Overwrite the local partition with the cloud copy."""
        return self._copy(self._cloud, self._local.backend, key, "pull")

    def _copy(
        self,
        source: KeyValueBackend,
        target: KeyValueBackend,
        key: StorageKey,
        direction: str,
    ) -> int:
        copied = 0
        for slot in self._slots(key):
            try:
                value = source.get(slot)
                if value is None:
                    target.delete(slot)
                else:
                    target.set(slot, value)
                    copied += 1
            except (StorageError, OSError) as e:
                logger.error("cloud_mirror_slot_failed", direction=direction, slot=slot, error=str(e))
        logger.info("cloud_mirror_complete", direction=direction, storage_key=key, slots=copied)
        return copied

    @property
    def last_backup_at(self) -> Optional[datetime]:
        return self._local.load_last_cloud_backup_at()
