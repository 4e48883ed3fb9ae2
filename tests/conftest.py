"""Shared fixtures: test settings, in-memory session storage, backend payloads."""

from typing import Any

import pytest

from userdesk.config import Settings
from userdesk.main import Container, build_container
from userdesk.storage import MemoryStorage


API = "http://api.test"


def envelope(data: Any = None, message: str = "OK") -> dict:
    return {"success": True, "message": message, "data": data, "timestamp": "2024-05-01T10:00:00.000Z"}


def error_body(message: str, errors: list | None = None) -> dict:
    body = {"success": False, "message": message, "timestamp": "2024-05-01T10:00:00.000Z"}
    if errors is not None:
        body["errors"] = errors
    return body


def user_payload(**overrides: Any) -> dict:
    user = {
        "id": "665f1c2e9b1d4a0012ab34cd",
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "age": 36,
        "createdAt": "2024-05-01T10:00:00.000Z",
        "updatedAt": "2024-05-01T10:00:00.000Z",
    }
    user.update(overrides)
    return user


def users_page(page: int = 1, limit: int = 9, total: int = 30, names: list[str] | None = None) -> dict:
    names = names or [f"User {i}" for i in range(min(limit, total))]
    total_pages = -(-total // limit)
    return {
        "success": True,
        "message": "Users retrieved",
        "data": [user_payload(id=f"id-{page}-{i}", name=n) for i, n in enumerate(names)],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
        "timestamp": "2024-05-01T10:00:00.000Z",
    }


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        API_BASE_URL=API,
        HTTP_TIMEOUT_SEC=10.0,
        SESSION_BACKEND="memory",
        USERS_PAGE_SIZE=9,
        VERIFY_TOKEN_ON_STARTUP=False,
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def container(test_settings: Settings, storage: MemoryStorage) -> Container:
    return build_container(test_settings, storage=storage)
