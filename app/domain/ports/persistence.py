from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol

from ..models import User


class DuplicateEmailError(Exception):
    """Raised by the store when the unique email constraint rejects an insert."""


class UserRepository(Protocol):
    """Persistence functions related to user accounts."""

    def create_user(self, user: User) -> User:
        ...

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def get_user_by_verification_token(self, token: str) -> Optional[User]:
        ...

    def get_user_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        ...

    def update_user(self, user_id: str, **changes: Any) -> Optional[User]:
        ...

    def mark_email_verified(self, user_id: str, token: str) -> Optional[User]:
        ...

    def change_password(self, user_id: str, password_hash: str) -> Optional[User]:
        ...

    def consume_password_reset(
        self,
        token_hash: str,
        password_hash: str,
        now: datetime,
    ) -> Optional[User]:
        ...

    def soft_delete_user(self, user_id: str, deleted_at: datetime) -> Optional[User]:
        ...


class AdvertisementRepository(Protocol):
    """Advertisements owned by a user and their public visibility."""

    def create_advertisement(self, user_id: str, title: str, *, is_public: bool = True) -> int:
        ...

    def count_public_advertisements(self, user_id: str) -> int:
        ...

    def hide_advertisements_for_user(self, user_id: str) -> int:
        ...


class PersistenceGateway(
    UserRepository,
    AdvertisementRepository,
    Protocol,
):
    """Composite gateway combining every persistence concern used by the app."""

    pass
