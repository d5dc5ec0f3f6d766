"""Account registration, credentials and session lifecycle."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...domain.errors import BadRequestError, ConflictError, UnauthorizedError, ValidationError
from ...domain.models import User, UserProfile
from ...domain.ports.notifications import Notifier
from ...domain.ports.persistence import AdvertisementRepository, DuplicateEmailError, UserRepository
from ...services.passwords import PasswordHasher
from ...services.token_service import SessionClaims, TokenService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only consumes the first 72 bytes.
MAX_PASSWORD_BYTES = 72

REGISTRATION_MESSAGE = "Registration successful. Please verify your email before logging in."
FORGOT_PASSWORD_MESSAGE = "If the email exists, password reset instructions have been sent."
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token"
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class Registration:
    email: str
    password: str
    profile: UserProfile


@dataclass(slots=True)
class RegistrationResult:
    success: bool
    message: str
    email: str


@dataclass(slots=True)
class AuthResult:
    user: User
    token: str


class CredentialService:
    """Owns registration, login, email verification, password changes and resets."""

    def __init__(
        self,
        users: UserRepository,
        password_hasher: PasswordHasher,
        token_service: TokenService,
        notifier: Notifier,
        advertisements: Optional[AdvertisementRepository] = None,
        *,
        verification_expiration_hours: int = 24,
        password_reset_expiration_minutes: int = 30,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._users = users
        self._hasher = password_hasher
        self._tokens = token_service
        self._notifier = notifier
        self._advertisements = advertisements
        self._verification_ttl = timedelta(hours=verification_expiration_hours)
        self._reset_ttl = timedelta(minutes=password_reset_expiration_minutes)
        self._clock = clock
        # Checked for unknown emails so both login failure paths cost one bcrypt verify.
        self._dummy_password_hash = password_hasher.hash(secrets.token_urlsafe(16))

    # Registration -----------------------------------------------------------
    async def register(self, registration: Registration) -> RegistrationResult:
        """
        Create an unverified account for any of the four user types.

        Raises:
            ValidationError: If the password is too short
            ConflictError: If the email is already registered
        """
        self._validate_password(registration.password)
        email = registration.email.strip().lower()

        if self._users.get_user_by_email(email):
            raise ConflictError("Email already registered")

        password_hash = await self._hash_password(registration.password)
        verification_token, verification_expires = self._new_verification_token()
        now = self._clock()
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=password_hash,
            user_type=registration.profile.user_type,
            profile=registration.profile,
            is_active=True,
            email_verified=False,
            token_version=0,
            created_at=now,
            updated_at=now,
            email_verification_token=verification_token,
            email_verification_expires=verification_expires,
        )

        try:
            created = self._users.create_user(user)
        except DuplicateEmailError as exc:
            raise ConflictError("Email already registered") from exc

        logger.info("Registered %s account %s", created.user_type.value, created.id)
        self._notifier.send_verification(created, verification_token)

        return RegistrationResult(success=True, message=REGISTRATION_MESSAGE, email=created.email)

    # Login & sessions -------------------------------------------------------
    async def login(self, email: str, password: str) -> AuthResult:
        user = self._users.get_user_by_email(email.strip().lower())
        if not user:
            await asyncio.to_thread(self._hasher.verify, password, self._dummy_password_hash)
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)

        if not await self._verify_password(password, user.password_hash):
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            raise UnauthorizedError("Account is inactive")

        if not user.email_verified:
            raise UnauthorizedError("Please verify your email before logging in")

        if self._hasher.needs_rehash(user.password_hash):
            upgraded = self._users.update_user(
                user.id, password_hash=await self._hash_password(password)
            )
            if upgraded:
                user = upgraded

        return AuthResult(user=user, token=self._tokens.issue(user))

    def authenticate_session(self, token: str) -> SessionClaims:
        """
        Verify a bearer token against the stored credential generation.

        Raises:
            UnauthorizedError: On a bad signature, expiry, unknown user or a
                ``tokenVersion`` that no longer matches the account
        """
        claims = self._tokens.decode(token)
        user = self._users.get_user_by_id(claims.user_id)
        if not user:
            raise UnauthorizedError("User not found")
        if user.token_version != claims.token_version:
            raise UnauthorizedError("Session expired, please login again")
        return claims

    async def get_current_user(self, user_id: str) -> User:
        user = self._users.get_user_by_id(user_id)
        if not user:
            raise UnauthorizedError("User not found")
        return user

    # Email verification -----------------------------------------------------
    async def verify_email(self, token: str) -> AuthResult:
        user = self._users.get_user_by_verification_token(token)
        if not user:
            raise BadRequestError("Invalid verification token")

        if user.email_verification_expires and _ensure_aware(user.email_verification_expires) < self._clock():
            raise BadRequestError("Verification token has expired")

        verified = self._users.mark_email_verified(user.id, token)
        if not verified:
            # Consumed concurrently by another request.
            raise BadRequestError("Invalid verification token")

        logger.info("Email verified for account %s", verified.id)
        self._notifier.send_welcome(verified)

        return AuthResult(user=verified, token=self._tokens.issue(verified))

    async def resend_verification(self, email: str) -> None:
        user = self._users.get_user_by_email(email.strip().lower())
        if not user:
            raise BadRequestError("Email not found")

        if user.email_verified:
            raise BadRequestError("Email already verified")

        verification_token, verification_expires = self._new_verification_token()
        updated = self._users.update_user(
            user.id,
            email_verification_token=verification_token,
            email_verification_expires=verification_expires,
        )
        self._notifier.send_verification(updated or user, verification_token)

    # Passwords --------------------------------------------------------------
    async def change_password(self, user_id: str, current_password: str, new_password: str) -> str:
        """
        Replace the password of an authenticated account.

        Returns:
            A fresh session token; every token issued before the change is revoked.
        """
        self._validate_password(new_password)

        user = self._users.get_user_by_id(user_id)
        if not user:
            raise UnauthorizedError("User not found")

        if not await self._verify_password(current_password, user.password_hash):
            raise UnauthorizedError("Current password is incorrect")

        updated = self._users.change_password(user.id, await self._hash_password(new_password))
        if not updated:
            raise UnauthorizedError("User not found")

        logger.info("Password changed for account %s", updated.id)
        return self._tokens.issue(updated)

    async def forgot_password(self, email: str) -> None:
        """Issue a one-time reset token. Silent when the email is unknown."""
        user = self._users.get_user_by_email(email.strip().lower())
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        raw_token = secrets.token_urlsafe(32)
        updated = self._users.update_user(
            user.id,
            password_reset_token_hash=hash_reset_token(raw_token),
            password_reset_expires=self._clock() + self._reset_ttl,
            password_reset_used_at=None,
        )
        logger.info("Password reset issued for account %s", user.id)
        self._notifier.send_password_reset(updated or user, raw_token)

    async def validate_reset_token(self, token: str) -> None:
        self._check_reset_token(token)

    async def reset_password(self, token: str, new_password: str) -> None:
        self._validate_password(new_password)
        self._check_reset_token(token)

        password_hash = await self._hash_password(new_password)
        updated = self._users.consume_password_reset(
            hash_reset_token(token), password_hash, self._clock()
        )
        if not updated:
            raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

        logger.info("Password reset completed for account %s", updated.id)

    # Account ----------------------------------------------------------------
    async def soft_delete_account(self, user_id: str) -> datetime:
        user = self._users.get_user_by_id(user_id)
        if not user:
            raise UnauthorizedError("User not found")

        if not user.is_active and user.soft_deleted_at:
            return user.soft_deleted_at

        deleted_at = self._clock()
        deleted = self._users.soft_delete_user(user.id, deleted_at)
        if not deleted:
            current = self._users.get_user_by_id(user.id)
            if current and current.soft_deleted_at:
                return current.soft_deleted_at
            raise UnauthorizedError("User not found")

        logger.info("Account %s soft-deleted", deleted.id)
        self._hide_advertisements(deleted.id)

        return deleted.soft_deleted_at or deleted_at

    async def accept_privacy_consent(self, user_id: str) -> User:
        user = self._users.get_user_by_id(user_id)
        if not user:
            raise UnauthorizedError("User not found")

        if user.privacy_consent_accepted_at:
            return user

        updated = self._users.update_user(user.id, privacy_consent_accepted_at=self._clock())
        return updated or user

    # Helpers ----------------------------------------------------------------
    def _hide_advertisements(self, user_id: str) -> None:
        if self._advertisements is None:
            return
        try:
            hidden = self._advertisements.hide_advertisements_for_user(user_id)
        except Exception:
            logger.exception("Failed to hide advertisements for soft-deleted account %s", user_id)
            return
        if hidden:
            logger.info("Hid %s advertisements for account %s", hidden, user_id)

    def _check_reset_token(self, token: str) -> User:
        user = self._users.get_user_by_reset_token_hash(hash_reset_token(token))
        if (
            not user
            or not user.password_reset_expires
            or _ensure_aware(user.password_reset_expires) <= self._clock()
            or user.password_reset_used_at is not None
        ):
            raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)
        return user

    def _new_verification_token(self) -> tuple[str, datetime]:
        return secrets.token_urlsafe(32), self._clock() + self._verification_ttl

    @staticmethod
    def _validate_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")

    async def _hash_password(self, password: str) -> str:
        return await asyncio.to_thread(self._hasher.hash, password)

    async def _verify_password(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self._hasher.verify, password, password_hash)
