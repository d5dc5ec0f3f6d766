from __future__ import annotations

from typing import Protocol

from ..models import User


class Notifier(Protocol):
    """Fire-and-forget account notifications.

    Implementations must return immediately and never raise delivery errors
    to the caller.
    """

    def send_verification(self, user: User, verification_token: str) -> None:
        ...

    def send_welcome(self, user: User) -> None:
        ...

    def send_password_reset(self, user: User, reset_token: str) -> None:
        ...
