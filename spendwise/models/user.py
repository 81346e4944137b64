"""
Identity Models

A User is either a guest (anonymous, ephemeral data) or authenticated
(identified by email). Exactly one user is current at a time; it is
replaced wholesale on sign-in, sign-up and sign-out, and only its profile
fields (display name, avatar) change in place.

All record collections are partitioned by a StorageKey derived from the
current user.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


GUEST_STORAGE_KEY = "guest"

StorageKey = str


class User(BaseModel):
    """The current identity."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Opaque identifier, stable for the session"
    )
    email: Optional[str] = Field(
        default=None,
        max_length=320,
        description="Present only for authenticated users"
    )
    display_name: Optional[str] = Field(
        default=None,
        max_length=200,
    )
    is_guest: bool = False
    avatar: Optional[bytes] = None

    @model_validator(mode='after')
    def validate_guest_has_no_email(self) -> 'User':
        """A guest never carries an email."""
        if self.is_guest and self.email:
            raise ValueError("Guest users cannot have an email")
        return self

    @classmethod
    def guest(cls) -> 'User':
        return cls(is_guest=True)

    @classmethod
    def authenticated(cls, email: str, display_name: Optional[str] = None) -> 'User':
        return cls(email=email, display_name=display_name, is_guest=False)

    def with_profile(
        self,
        display_name: Optional[str] = None,
        avatar: Optional[bytes] = None,
    ) -> 'User':
        """Copy of this user with the given profile fields replaced."""
        update = {}
        if display_name is not None:
            update["display_name"] = display_name
        if avatar is not None:
            update["avatar"] = avatar
        return self.model_copy(update=update)

    @property
    def greeting_name(self) -> str:
        """Display name, else the local part of the email, else 'User'."""
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split("@")[0].capitalize() or "User"
        return "User"


def derive_storage_key(user: User) -> StorageKey:
    """
    Partition key for a user's records.

    Guests map to ``"guest"``, authenticated users to their email. An
    authenticated user without an email also falls back to ``"guest"``.
    """
    if user.is_guest or not user.email:
        return GUEST_STORAGE_KEY
    return user.email


class GuestSessionMarker(BaseModel):
    """
    Bookkeeping for ephemeral guest data.

    ``created_at`` is set when guest data is first written and cleared
    on sign-in or after a purge.
    """

    created_at: Optional[datetime] = None
    last_session_was_guest: bool = False
    clear_on_next_launch: bool = False

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        """True when guest data is older than ``ttl``."""
        if self.created_at is None:
            return False
        return now - self.created_at > ttl

    def needs_launch_purge(self, now: datetime, ttl: timedelta) -> bool:
        return self.clear_on_next_launch or self.is_expired(now, ttl)
