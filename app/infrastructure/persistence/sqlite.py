import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ...domain.models import User, UserType, profile_from_dict, profile_to_dict
from ...domain.ports.persistence import DuplicateEmailError, PersistenceGateway

_USER_COLUMNS = (
    "email",
    "password_hash",
    "user_type",
    "profile",
    "is_active",
    "email_verified",
    "token_version",
    "soft_deleted_at",
    "privacy_consent_accepted_at",
    "email_verification_token",
    "email_verification_expires",
    "password_reset_token_hash",
    "password_reset_expires",
    "password_reset_used_at",
)

_IMMUTABLE_COLUMNS = {"id", "email", "user_type", "token_version", "created_at", "updated_at"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    # Fixed-width UTC strings so lexical comparison in SQL matches time order.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed implementation of the persistence gateway."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    user_type TEXT NOT NULL,
                    profile TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    email_verified INTEGER NOT NULL DEFAULT 0,
                    token_version INTEGER NOT NULL DEFAULT 0,
                    soft_deleted_at TEXT,
                    privacy_consent_accepted_at TEXT,
                    email_verification_token TEXT,
                    email_verification_expires TEXT,
                    password_reset_token_hash TEXT,
                    password_reset_expires TEXT,
                    password_reset_used_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_verification_token
                    ON users(email_verification_token);

                CREATE INDEX IF NOT EXISTS idx_users_reset_token_hash
                    ON users(password_reset_token_hash);

                CREATE TABLE IF NOT EXISTS advertisements (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    is_public INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_advertisements_user_id
                    ON advertisements(user_id);
                """
            )

    def close(self) -> None:
        self._conn.close()

    # UserRepository API -----------------------------------------------------
    def create_user(self, user: User) -> User:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO users (
                        id, email, password_hash, user_type, profile, is_active,
                        email_verified, token_version, soft_deleted_at,
                        privacy_consent_accepted_at, email_verification_token,
                        email_verification_expires, password_reset_token_hash,
                        password_reset_expires, password_reset_used_at,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.id,
                        user.email,
                        user.password_hash,
                        user.user_type.value,
                        json.dumps(profile_to_dict(user.profile), ensure_ascii=False),
                        int(user.is_active),
                        int(user.email_verified),
                        user.token_version,
                        _to_iso(user.soft_deleted_at),
                        _to_iso(user.privacy_consent_accepted_at),
                        user.email_verification_token,
                        _to_iso(user.email_verification_expires),
                        user.password_reset_token_hash,
                        _to_iso(user.password_reset_expires),
                        _to_iso(user.password_reset_used_at),
                        _to_iso(user.created_at),
                        _to_iso(user.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "users.email" in str(exc):
                raise DuplicateEmailError(user.email) from exc
            raise
        created = self.get_user_by_id(user.id)
        if created is None:
            raise RuntimeError("Failed to persist user")
        return created

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._fetch_user("id = ?", (user_id,))

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._fetch_user("email = ?", (email.strip().lower(),))

    def get_user_by_verification_token(self, token: str) -> Optional[User]:
        return self._fetch_user("email_verification_token = ?", (token,))

    def get_user_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        return self._fetch_user("password_reset_token_hash = ?", (token_hash,))

    def update_user(self, user_id: str, **changes: Any) -> Optional[User]:
        assignments: List[str] = []
        params: List[Any] = []
        for key, value in changes.items():
            if key in _IMMUTABLE_COLUMNS or key not in _USER_COLUMNS:
                raise ValueError(f"Unsupported user field: {key}")
            assignments.append(f"{key} = ?")
            params.append(self._serialize(key, value))
        assignments.append("updated_at = ?")
        params.append(_to_iso(_utcnow()))
        params.append(user_id)
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"UPDATE users SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
        if cur.rowcount == 0:
            return None
        return self.get_user_by_id(user_id)

    def mark_email_verified(self, user_id: str, token: str) -> Optional[User]:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE users
                SET email_verified = 1, email_verification_token = NULL,
                    email_verification_expires = NULL, updated_at = ?
                WHERE id = ? AND email_verification_token = ?
                """,
                (_to_iso(_utcnow()), user_id, token),
            )
        if cur.rowcount == 0:
            return None
        return self.get_user_by_id(user_id)

    def change_password(self, user_id: str, password_hash: str) -> Optional[User]:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE users
                SET password_hash = ?, token_version = token_version + 1,
                    password_reset_token_hash = NULL, password_reset_expires = NULL,
                    updated_at = ?
                WHERE id = ?
                """,
                (password_hash, _to_iso(_utcnow()), user_id),
            )
        if cur.rowcount == 0:
            return None
        return self.get_user_by_id(user_id)

    def consume_password_reset(
        self,
        token_hash: str,
        password_hash: str,
        now: datetime,
    ) -> Optional[User]:
        now_iso = _to_iso(now)
        with self._lock, self._conn:
            row = self._conn.execute(
                """
                SELECT id FROM users
                WHERE password_reset_token_hash = ?
                  AND password_reset_used_at IS NULL
                  AND password_reset_expires > ?
                """,
                (token_hash, now_iso),
            ).fetchone()
            if row is None:
                return None
            cur = self._conn.execute(
                """
                UPDATE users
                SET password_hash = ?, token_version = token_version + 1,
                    password_reset_token_hash = NULL, password_reset_expires = NULL,
                    password_reset_used_at = ?, updated_at = ?
                WHERE id = ?
                  AND password_reset_token_hash = ?
                  AND password_reset_used_at IS NULL
                """,
                (password_hash, now_iso, now_iso, row["id"], token_hash),
            )
        if cur.rowcount == 0:
            return None
        return self.get_user_by_id(row["id"])

    def soft_delete_user(self, user_id: str, deleted_at: datetime) -> Optional[User]:
        deleted_iso = _to_iso(deleted_at)
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE users
                SET is_active = 0, soft_deleted_at = ?,
                    token_version = token_version + 1, updated_at = ?
                WHERE id = ? AND is_active = 1
                """,
                (deleted_iso, deleted_iso, user_id),
            )
        if cur.rowcount == 0:
            return None
        return self.get_user_by_id(user_id)

    # AdvertisementRepository API ---------------------------------------------
    def create_advertisement(self, user_id: str, title: str, *, is_public: bool = True) -> int:
        now = _to_iso(_utcnow())
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO advertisements (user_id, title, is_public, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, title, int(is_public), now, now),
            )
        return int(cur.lastrowid)

    def count_public_advertisements(self, user_id: str) -> int:
        with self._lock:
            cur = self._conn.execute(
                "SELECT COUNT(*) FROM advertisements WHERE user_id = ? AND is_public = 1",
                (user_id,),
            )
            row = cur.fetchone()
        return int(row[0])

    def hide_advertisements_for_user(self, user_id: str) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE advertisements
                SET is_public = 0, updated_at = ?
                WHERE user_id = ? AND is_public = 1
                """,
                (_to_iso(_utcnow()), user_id),
            )
        return cur.rowcount

    # Helpers ----------------------------------------------------------------
    def _fetch_user(self, where: str, params: Tuple[Any, ...]) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute(f"SELECT * FROM users WHERE {where} LIMIT 1", params)
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    @staticmethod
    def _serialize(key: str, value: Any) -> Any:
        if isinstance(value, datetime):
            return _to_iso(value)
        if isinstance(value, bool):
            return int(value)
        if key == "profile" and value is not None:
            return json.dumps(profile_to_dict(value), ensure_ascii=False)
        return value

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        user_type = UserType(row["user_type"])
        profile_data: Dict[str, Any] = json.loads(row["profile"])
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            user_type=user_type,
            profile=profile_from_dict(user_type, profile_data),
            is_active=bool(row["is_active"]),
            email_verified=bool(row["email_verified"]),
            token_version=int(row["token_version"]),
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
            soft_deleted_at=_from_iso(row["soft_deleted_at"]),
            privacy_consent_accepted_at=_from_iso(row["privacy_consent_accepted_at"]),
            email_verification_token=row["email_verification_token"],
            email_verification_expires=_from_iso(row["email_verification_expires"]),
            password_reset_token_hash=row["password_reset_token_hash"],
            password_reset_expires=_from_iso(row["password_reset_expires"]),
            password_reset_used_at=_from_iso(row["password_reset_used_at"]),
        )
