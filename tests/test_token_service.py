import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.domain.errors import UnauthorizedError
from app.domain.models import MemberProfile, User, UserType
from app.services.passwords import PasswordHasher
from app.services.token_service import TokenService

from conftest import TEST_JWT_SECRET


def _member(token_version=3):
    now = datetime.now(timezone.utc)
    return User(
        id=str(uuid.uuid4()),
        email="m@x.com",
        password_hash="hash",
        user_type=UserType.MEMBER,
        profile=MemberProfile(username="night_owl", city="NY"),
        is_active=True,
        email_verified=True,
        token_version=token_version,
        created_at=now,
        updated_at=now,
    )


def test_issue_and_decode_round_trip(token_service):
    user = _member()

    claims = token_service.decode(token_service.issue(user))

    assert claims.user_id == user.id
    assert claims.email == "m@x.com"
    assert claims.user_type is UserType.MEMBER
    assert claims.token_version == 3


def test_decode_rejects_expired_token():
    service = TokenService(secret_key=TEST_JWT_SECRET, expiration_hours=-1)

    with pytest.raises(UnauthorizedError) as exc_info:
        service.decode(service.issue(_member()))

    assert exc_info.value.message == "Session expired, please login again"


def test_decode_rejects_foreign_signature(token_service):
    forged = TokenService(secret_key="another-secret-key-that-is-long-enough").issue(_member())

    with pytest.raises(UnauthorizedError):
        token_service.decode(forged)


def test_decode_requires_token_version(token_service):
    token = jwt.encode(
        {
            "sub": "user-1",
            "email": "m@x.com",
            "userType": "member",
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        TEST_JWT_SECRET,
        algorithm="HS256",
    )

    with pytest.raises(UnauthorizedError):
        token_service.decode(token)


def test_empty_secret_is_rejected():
    with pytest.raises(RuntimeError):
        TokenService(secret_key="")


def test_password_hasher_round_trip():
    hasher = PasswordHasher(rounds=4)
    password_hash = hasher.hash("secret1")

    assert password_hash != "secret1"
    assert hasher.verify("secret1", password_hash)
    assert not hasher.verify("secret2", password_hash)
    assert not hasher.verify("secret1", "not-a-bcrypt-hash")
    assert not hasher.needs_rehash(password_hash)
    assert PasswordHasher(rounds=5).needs_rehash(password_hash)
