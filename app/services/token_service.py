"""Signed session tokens carrying account identity claims."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from app.domain.errors import UnauthorizedError
from app.domain.models.user import User, UserType

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SessionClaims:
    user_id: str
    email: str
    user_type: UserType
    token_version: int


class TokenService:
    """Issues and verifies HS256 JWT session tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expiration_hours: int = 24 * 7,
    ):
        if not secret_key:
            raise RuntimeError("JWT_SECRET is not configured.")
        if secret_key == "change-me":
            logger.warning("JWT_SECRET is using the default value. Configure a strong secret in production.")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expiration_hours = expiration_hours

    def issue(self, user: User) -> str:
        """
        Create a session token for ``user``.

        The embedded ``tokenVersion`` ties the token to the account's current
        credential generation.
        """
        now = datetime.now(tz=timezone.utc)
        payload: Dict[str, Any] = {
            "sub": user.id,
            "email": user.email,
            "userType": user.user_type.value,
            "tokenVersion": user.token_version,
            "iat": now,
            "exp": now + timedelta(hours=self.expiration_hours),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> SessionClaims:
        """
        Verify signature and expiry and return the identity claims.

        Raises:
            UnauthorizedError: If the token is malformed, tampered with or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("Session expired, please login again") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Invalid or expired token") from exc

        try:
            return SessionClaims(
                user_id=str(payload["sub"]),
                email=str(payload["email"]),
                user_type=UserType(payload["userType"]),
                token_version=int(payload["tokenVersion"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid or expired token") from exc
