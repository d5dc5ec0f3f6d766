from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..domain.models import User
from ..domain.ports.notifications import Notifier
from .email_service import EmailService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationJob:
    kind: str
    recipient: str
    send: Callable[[], bool]


class EmailNotifier(Notifier):
    """Background worker that delivers account emails off the request path."""

    def __init__(self, email_service: EmailService, *, max_workers: int = 1) -> None:
        self._email_service = email_service
        self._max_workers = max_workers
        self._queue: asyncio.Queue[Optional[NotificationJob]] = asyncio.Queue()
        self._workers: List[asyncio.Task[None]] = []
        self._shutdown = asyncio.Event()

    async def start(self) -> None:
        if self._workers:
            return
        logger.info("Starting email notifier with %s workers.", self._max_workers)
        self._shutdown.clear()
        loop = asyncio.get_running_loop()
        for _ in range(self._max_workers):
            task = loop.create_task(self._worker(), name="email-notifier")
            self._workers.append(task)

    async def stop(self) -> None:
        if not self._workers:
            return
        logger.info("Stopping email notifier.")
        self._shutdown.set()
        for _ in self._workers:
            self._queue.put_nowait(None)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    async def drain(self) -> None:
        """Wait until every queued job has been attempted."""
        await self._queue.join()

    # Notifier API -----------------------------------------------------------
    def send_verification(self, user: User, verification_token: str) -> None:
        email = user.email
        self._enqueue(
            NotificationJob(
                kind="verification",
                recipient=email,
                send=lambda: self._email_service.send_verification_email(email, verification_token),
            )
        )

    def send_welcome(self, user: User) -> None:
        self._enqueue(
            NotificationJob(
                kind="welcome",
                recipient=user.email,
                send=lambda: self._email_service.send_welcome_email(user),
            )
        )

    def send_password_reset(self, user: User, reset_token: str) -> None:
        email = user.email
        self._enqueue(
            NotificationJob(
                kind="password-reset",
                recipient=email,
                send=lambda: self._email_service.send_password_reset_email(email, reset_token),
            )
        )

    def _enqueue(self, job: NotificationJob) -> None:
        if self._shutdown.is_set():
            logger.warning("Email notifier is shutting down; dropping %s email for %s.", job.kind, job.recipient)
            return
        self._queue.put_nowait(job)

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            if job is None:
                self._queue.task_done()
                break
            try:
                await self._deliver(job)
            except Exception:
                logger.exception("Unexpected error while sending %s email to %s.", job.kind, job.recipient)
            finally:
                self._queue.task_done()

    async def _deliver(self, job: NotificationJob) -> None:
        logger.debug("Sending %s email to %s", job.kind, job.recipient)
        delivered = await asyncio.to_thread(job.send)
        if not delivered:
            logger.warning("Failed to deliver %s email to %s.", job.kind, job.recipient)
