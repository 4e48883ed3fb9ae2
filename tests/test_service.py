"""End-to-end tests for AccountService over the real ApiClient.

The backend is mocked with pytest-httpx; session storage is in memory.
"""

import json

import pytest
from pytest_httpx import HTTPXMock

from conftest import API, envelope, error_body, user_payload, users_page
from userdesk.errors import ApiError, SessionExpiredError, ValidationFailed
from userdesk.main import build_container
from userdesk.models import User
from userdesk.pagination import UsersQuery
from userdesk.storage import SESSION_KEY, TOKEN_KEY

LIST_URL = f"{API}/api/users?page=1&limit=9"


async def logged_in(container, token: str = "abc") -> None:
    await container.session.set_session(User.model_validate(user_payload()), token)


# =============================================================================
# Login / register
# =============================================================================


@pytest.mark.asyncio
async def test_login_then_list_users_carries_bearer(container, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST",
        url=f"{API}/api/auth/login",
        json=envelope({"user": user_payload(), "token": "abc"}, "Login successful"),
    )
    httpx_mock.add_response(method="GET", url=LIST_URL, json=users_page())

    user = await container.service.login({"email": "Ada@Example.com ", "password": "secret1"})

    assert user.email == "ada@example.com"
    assert container.session.is_authorized is True
    assert container.navigator.location == "/dashboard"

    await container.service.users.list_users(UsersQuery(page=1, limit=9))

    login_req, list_req = httpx_mock.get_requests()
    assert json.loads(login_req.content) == {"email": "ada@example.com", "password": "secret1"}
    assert list_req.headers["Authorization"] == "Bearer abc"


@pytest.mark.asyncio
async def test_wrong_password_keeps_existing_session(container, httpx_mock: HTTPXMock):
    await logged_in(container, "still-valid")
    httpx_mock.add_response(
        method="POST", url=f"{API}/api/auth/login", status_code=401, json=error_body("Invalid email or password")
    )

    with pytest.raises(ApiError) as exc_info:
        await container.service.login({"email": "ada@example.com", "password": "nope"})

    assert exc_info.value.message == "Invalid email or password"
    assert container.session.token == "still-valid"
    assert container.navigator.location == "/dashboard"


@pytest.mark.asyncio
async def test_register_starts_session(container, storage, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST",
        url=f"{API}/api/auth/register",
        status_code=201,
        json=envelope({"user": user_payload(), "token": "fresh"}, "User registered"),
    )

    await container.service.register(
        {"name": " Ada Lovelace ", "email": "ada@example.com", "password": "secret1", "age": 36}
    )

    assert container.session.is_authorized is True
    assert storage.data[TOKEN_KEY] == "fresh"
    body = json.loads(httpx_mock.get_request().content)
    assert body["name"] == "Ada Lovelace"


@pytest.mark.asyncio
async def test_register_conflict_is_plain_error(container, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST", url=f"{API}/api/auth/register", status_code=409, json=error_body("Email already exists")
    )

    with pytest.raises(ApiError) as exc_info:
        await container.service.register({"name": "Ada", "email": "ada@example.com", "password": "secret1", "age": 36})

    assert exc_info.value.status == 409
    assert container.session.is_authorized is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload,field",
    [
        ({"name": "A", "email": "ada@example.com", "password": "secret1", "age": 36}, "name"),
        ({"name": "Ada 2", "email": "ada@example.com", "password": "secret1", "age": 36}, "name"),
        ({"name": "Ada", "email": "not-an-email", "password": "secret1", "age": 36}, "email"),
        ({"name": "Ada", "email": "ada@example.com", "password": "has space", "age": 36}, "password"),
        ({"name": "Ada", "email": "ada@example.com", "password": "secret1", "age": 12}, "age"),
    ],
)
async def test_invalid_registration_never_sent(container, httpx_mock: HTTPXMock, payload, field):
    with pytest.raises(ValidationFailed) as exc_info:
        await container.service.register(payload)

    assert [e.field for e in exc_info.value.errors] == [field]
    assert httpx_mock.get_requests() == []


# =============================================================================
# Session expiry
# =============================================================================


@pytest.mark.asyncio
async def test_401_on_list_clears_session_and_redirects(container, storage, httpx_mock: HTTPXMock):
    await logged_in(container)
    httpx_mock.add_response(method="GET", url=LIST_URL, status_code=401, json=error_body("Invalid or expired token"))
    httpx_mock.add_response(method="GET", url=LIST_URL, status_code=401, json=error_body("No token provided"))

    with pytest.raises(SessionExpiredError):
        await container.service.users.list_users(UsersQuery(page=1, limit=9))

    assert container.session.is_authorized is False
    assert container.session.user is None
    assert storage.data == {}
    assert container.navigator.location == "/login"

    with pytest.raises(SessionExpiredError):
        await container.service.users.list_users(UsersQuery(page=1, limit=9))

    first, retried = httpx_mock.get_requests()
    assert first.headers["Authorization"] == "Bearer abc"
    assert "Authorization" not in retried.headers


# =============================================================================
# Password flows
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [200, 404])
async def test_forgot_password_reports_success_for_any_email(container, httpx_mock: HTTPXMock, status):
    httpx_mock.add_response(
        method="POST",
        url=f"{API}/api/auth/forgot-password",
        status_code=status,
        json=envelope(None, "If that email exists, a reset link has been sent") if status == 200 else error_body("User not found"),
    )

    result = await container.service.request_password_reset({"email": "nonexistent@x.com"})

    assert result is None
    assert json.loads(httpx_mock.get_request().content) == {"email": "nonexistent@x.com"}


@pytest.mark.asyncio
async def test_reset_password_navigates_to_login_without_session(container, httpx_mock: HTTPXMock):
    httpx_mock.add_response(method="POST", url=f"{API}/api/auth/reset-password", json=envelope(None))

    await container.service.reset_password({"token": "reset-tok", "newPassword": "newsecret"})

    assert container.session.is_authorized is False
    assert container.navigator.location == "/login"
    assert json.loads(httpx_mock.get_request().content) == {"token": "reset-tok", "newPassword": "newsecret"}


@pytest.mark.asyncio
async def test_reset_password_with_stale_token(container, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST", url=f"{API}/api/auth/reset-password", status_code=400, json=error_body("Invalid or expired reset token")
    )

    with pytest.raises(ApiError) as exc_info:
        await container.service.reset_password({"token": "old", "newPassword": "newsecret"})

    assert exc_info.value.message == "Invalid or expired reset token"
    assert container.navigator.location == "/dashboard"


@pytest.mark.asyncio
async def test_change_password_keeps_token(container, httpx_mock: HTTPXMock):
    await logged_in(container)
    httpx_mock.add_response(method="PATCH", url=f"{API}/api/auth/change-password", json=envelope(None))

    await container.service.change_password({"currentPassword": "secret1", "newPassword": "secret2"})

    assert container.session.token == "abc"
    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer abc"
    assert json.loads(request.content) == {"currentPassword": "secret1", "newPassword": "secret2"}


# =============================================================================
# Profile
# =============================================================================


@pytest.mark.asyncio
async def test_update_profile_patches_with_server_record(container, httpx_mock: HTTPXMock):
    await logged_in(container)
    server_user = user_payload(name="Ada King", updatedAt="2024-06-01T12:00:00.000Z")
    httpx_mock.add_response(
        method="PUT", url=f"{API}/api/users/665f1c2e9b1d4a0012ab34cd", json=envelope(server_user, "User updated")
    )

    await container.service.update_profile({"name": "Ada King"})

    assert json.loads(httpx_mock.get_request().content) == {"name": "Ada King"}
    assert container.session.user.name == "Ada King"
    assert container.session.user.updated_at == "2024-06-01T12:00:00.000Z"


@pytest.mark.asyncio
async def test_update_profile_requires_user(container, httpx_mock: HTTPXMock):
    with pytest.raises(ApiError, match="User not found"):
        await container.service.update_profile({"name": "Ada King"})


@pytest.mark.asyncio
async def test_delete_account_clears_session(container, storage, httpx_mock: HTTPXMock):
    await logged_in(container)
    httpx_mock.add_response(method="DELETE", url=f"{API}/api/users/665f1c2e9b1d4a0012ab34cd", json=envelope(None))

    await container.service.delete_account()

    assert container.session.is_authorized is False
    assert SESSION_KEY not in storage.data
    assert container.navigator.location == "/login"


@pytest.mark.asyncio
async def test_logout_is_local_only(container, httpx_mock: HTTPXMock):
    await logged_in(container)

    await container.service.logout()
    await container.service.logout()

    assert container.session.is_authorized is False
    assert container.navigator.location == "/login"
    assert httpx_mock.get_requests() == []


# =============================================================================
# Startup
# =============================================================================


@pytest.mark.asyncio
async def test_bootstrap_is_optimistic_by_default(container, storage, httpx_mock: HTTPXMock):
    storage.data[TOKEN_KEY] = "maybe-stale"
    storage.data[SESSION_KEY] = json.dumps({"user": user_payload(), "token": "maybe-stale"})

    assert await container.service.bootstrap() is True
    assert httpx_mock.get_requests() == []


@pytest.mark.asyncio
async def test_bootstrap_can_verify_eagerly(test_settings, storage, httpx_mock: HTTPXMock):
    cfg = test_settings.model_copy(update={"VERIFY_TOKEN_ON_STARTUP": True})
    container = build_container(cfg, storage=storage)
    storage.data[TOKEN_KEY] = "stale"
    storage.data[SESSION_KEY] = json.dumps({"user": user_payload(), "token": "stale"})
    httpx_mock.add_response(
        method="POST", url=f"{API}/api/auth/verify-token", status_code=401, json=error_body("Invalid token")
    )

    assert await container.service.bootstrap() is False
    assert container.navigator.location == "/login"
    assert httpx_mock.get_request().headers["Authorization"] == "Bearer stale"


@pytest.mark.asyncio
async def test_bootstrap_survives_unreachable_backend(test_settings, storage, httpx_mock: HTTPXMock):
    import httpx

    cfg = test_settings.model_copy(update={"VERIFY_TOKEN_ON_STARTUP": True})
    container = build_container(cfg, storage=storage)
    storage.data[SESSION_KEY] = json.dumps({"user": user_payload(), "token": "abc"})
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))

    assert await container.service.bootstrap() is True
