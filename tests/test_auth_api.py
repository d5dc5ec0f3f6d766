import pytest

ESCORT = {
    "email": "a@x.com",
    "password": "secret1",
    "name": "Anna",
    "phone": "+1 555 0100",
    "city": "NY",
    "age": 25,
}


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


async def _register_and_verify(client, notifier, payload=None):
    payload = payload or ESCORT
    response = await client.post("/auth/register/escort", json=payload)
    assert response.status_code == 201
    token = notifier.last_verification_token(payload["email"])
    response = await client.get("/auth/verify-email", params={"token": token})
    assert response.status_code == 200
    return response.json()["data"]["token"]


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_escort_registration_verification_and_login(async_client, notifier):
    response = await async_client.post("/auth/register/escort", json=ESCORT)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"email": "a@x.com"}
    assert "error" not in body

    response = await async_client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Please verify your email before logging in",
    }

    token = notifier.last_verification_token("a@x.com")
    response = await async_client.get("/auth/verify-email", params={"token": token})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["emailVerified"] is True
    assert data["token"]

    response = await async_client.post("/auth/login", json={"email": "A@x.com", "password": "secret1"})
    assert response.status_code == 200
    session_token = response.json()["data"]["token"]

    response = await async_client.get("/auth/me", headers=_bearer(session_token))
    assert response.status_code == 200
    user = response.json()["data"]
    assert user["email"] == "a@x.com"
    assert user["userType"] == "escort"
    assert user["name"] == "Anna"
    assert user["age"] == 25
    assert user["tokenVersion"] == 0
    for secret in ("password", "passwordHash", "emailVerificationToken", "passwordResetTokenHash"):
        assert secret not in user


@pytest.mark.asyncio
async def test_club_registration_exposes_camel_case_profile(async_client, notifier):
    payload = {
        "email": "club@x.com",
        "password": "secret1",
        "clubName": "Velvet",
        "phone": "+1 555 0199",
        "address": "1 Main St",
        "city": "NY",
        "website": "https://velvet.example.com",
        "openingHours": "20:00-04:00",
    }
    response = await async_client.post("/auth/register/club", json=payload)
    assert response.status_code == 201

    token = notifier.last_verification_token("club@x.com")
    response = await async_client.get("/auth/verify-email", params={"token": token})
    user = response.json()["data"]["user"]

    assert user["userType"] == "club"
    assert user["clubName"] == "Velvet"
    assert user["openingHours"] == "20:00-04:00"
    assert user["website"].startswith("https://velvet.example.com")


@pytest.mark.asyncio
async def test_member_and_agency_registration(async_client):
    member = await async_client.post(
        "/auth/register/member",
        json={"email": "m@x.com", "password": "secret1", "username": "night_owl", "city": "NY"},
    )
    agency = await async_client.post(
        "/auth/register/agency",
        json={"email": "ag@x.com", "password": "secret1", "agencyName": "Elite", "phone": "+44 20", "city": "London"},
    )

    assert member.status_code == 201
    assert agency.status_code == 201


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [
        {"password": "abc"},
        {"age": 17},
        {"email": "not-an-email"},
        {"phone": "call me"},
    ],
)
async def test_registration_validation_errors(async_client, persistence, override):
    response = await async_client.post("/auth/register/escort", json={**ESCORT, **override})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]
    assert persistence.get_user_by_email("a@x.com") is None


@pytest.mark.asyncio
async def test_duplicate_registration_conflicts(async_client):
    await async_client.post("/auth/register/escort", json=ESCORT)

    response = await async_client.post("/auth/register/escort", json={**ESCORT, "email": "A@X.COM"})

    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Email already registered"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Token abc"},
        {"Authorization": "Bearer not-a-jwt"},
    ],
)
async def test_me_rejects_missing_or_malformed_credentials(async_client, headers):
    response = await async_client.get("/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_verify_email_requires_token(async_client):
    response = await async_client.get("/auth/verify-email")

    assert response.status_code == 400
    assert response.json()["error"] == "Verification token is required"


@pytest.mark.asyncio
async def test_change_password_rotates_session(async_client, notifier):
    old_token = await _register_and_verify(async_client, notifier)

    response = await async_client.put(
        "/auth/change-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
        headers=_bearer(old_token),
    )
    assert response.status_code == 200
    new_token = response.json()["data"]["token"]

    stale = await async_client.get("/auth/me", headers=_bearer(old_token))
    fresh = await async_client.get("/auth/me", headers=_bearer(new_token))
    assert stale.status_code == 401
    assert fresh.status_code == 200
    assert fresh.json()["data"]["tokenVersion"] == 1


@pytest.mark.asyncio
async def test_forgot_password_response_does_not_reveal_accounts(async_client, notifier):
    await _register_and_verify(async_client, notifier)

    known = await async_client.post("/auth/forgot-password", json={"email": "a@x.com"})
    unknown = await async_client.post("/auth/forgot-password", json={"email": "ghost@x.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(notifier.password_resets) == 1


@pytest.mark.asyncio
async def test_password_reset_flow(async_client, notifier):
    await _register_and_verify(async_client, notifier)
    await async_client.post("/auth/forgot-password", json={"email": "a@x.com"})
    reset_token = notifier.last_reset_token("a@x.com")

    response = await async_client.get("/auth/reset-password/validate", params={"token": reset_token})
    assert response.status_code == 200
    assert response.json()["data"] == {"valid": True}

    response = await async_client.post(
        "/auth/reset-password", json={"token": reset_token, "newPassword": "secret2"}
    )
    assert response.status_code == 200

    replay = await async_client.post(
        "/auth/reset-password", json={"token": reset_token, "newPassword": "secret3"}
    )
    assert replay.status_code == 400
    assert replay.json()["error"] == "Invalid or expired reset token"

    response = await async_client.get("/auth/reset-password/validate", params={"token": reset_token})
    assert response.status_code == 400

    login = await async_client.post("/auth/login", json={"email": "a@x.com", "password": "secret2"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_delete_me_soft_deletes_and_revokes(async_client, notifier, persistence):
    token = await _register_and_verify(async_client, notifier)

    response = await async_client.delete("/auth/me", headers=_bearer(token))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["softDeletedAt"]
    assert body["data"]["softDeletedAt"] == body["softDeletedAt"]

    again = await async_client.delete("/auth/me", headers=_bearer(token))
    assert again.status_code == 401

    response = await async_client.get("/auth/me", headers=_bearer(token))
    assert response.status_code == 401

    login = await async_client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert login.status_code == 401
    assert login.json()["error"] == "Account is inactive"
    assert persistence.get_user_by_email("a@x.com").is_active is False


@pytest.mark.asyncio
async def test_privacy_consent(async_client, notifier):
    token = await _register_and_verify(async_client, notifier)

    response = await async_client.post("/auth/consent/privacy", headers=_bearer(token))

    assert response.status_code == 200
    assert response.json()["data"]["privacyConsentAcceptedAt"]


@pytest.mark.asyncio
async def test_resend_verification_unknown_email(async_client):
    response = await async_client.post("/auth/resend-verification", json={"email": "ghost@x.com"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Email not found"}
