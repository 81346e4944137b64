"""Current-user persistence and storage key derivation."""

from typing import Optional

from spendwise.log import get_logger
from spendwise.models.user import StorageKey, User, derive_storage_key
from spendwise.services.storage.interface import LocalStoreInterface


logger = get_logger(__name__)


class IdentityService:
    """Loads and saves the single current user."""

    def __init__(self, local_store: LocalStoreInterface):
        self._local = local_store

    def load_current_user(self) -> User:
        """
        The persisted user, or a fresh guest.

        A synthesized guest is persisted immediately so its id stays
        stable across launches.
        """
        user = self._local.load_user()
        if user is None:
            user = User.guest()
            self._local.save_user(user)
            logger.info("guest_user_created", user_id=str(user.id))
        return user

    def save_current_user(self, user: Optional[User]) -> None:
        self._local.save_user(user)

    @staticmethod
    def derive_storage_key(user: User) -> StorageKey:
        return derive_storage_key(user)
