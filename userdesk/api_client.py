from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .errors import DEFAULT_MESSAGE, ApiError, SessionExpiredError, parse_field_errors
from .session import TokenCache


logger = logging.getLogger(__name__)

# a 401 from these is a wrong password, not an expired session
AUTH_ENDPOINTS = ("/auth/login", "/auth/register")


def is_auth_endpoint(path: str) -> bool:
    return any(p in path for p in AUTH_ENDPOINTS)


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token_cache: TokenCache,
        timeout_sec: float = 10.0,
        on_unauthorized: Optional[Callable[[], Awaitable[None]]] = None,
        login_path: str = "/login",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout_sec
        self.token_cache = token_cache
        self.on_unauthorized = on_unauthorized
        self.login_path = login_path
        self._transport = transport
        self._tearing_down = False

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_cache.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.request(method, url, headers=self._headers(), params=params, json=json)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out after %ss", method, path, self.timeout)
            raise ApiError(f"Request timed out after {self.timeout:g} seconds", timeout=True) from e
        except httpx.HTTPError as e:
            logger.exception("%s %s failed", method, path)
            raise ApiError(str(e) or DEFAULT_MESSAGE) from e

        try:
            body = r.json()
        except ValueError:
            body = None

        if r.status_code >= 400:
            raise await self._failure(method, path, r.status_code, body)
        return body

    async def _failure(self, method: str, path: str, status: int, body: Any) -> ApiError:
        server = body if isinstance(body, dict) else {}
        message = server.get("message") or f"Request failed with status code {status}"
        errors = parse_field_errors(server.get("errors"))
        logger.info("%s %s -> %s %s", method, path, status, message)

        if status == 401 and not is_auth_endpoint(path):
            await self._expire_session()
            return SessionExpiredError(message, redirect_to=self.login_path)
        return ApiError(message, status=status, errors=errors)

    async def _expire_session(self) -> None:
        # teardown must not send requests, or a failure would land back here
        if self._tearing_down or self.on_unauthorized is None:
            return
        self._tearing_down = True
        try:
            await self.on_unauthorized()
        finally:
            self._tearing_down = False

    # envelope helpers

    async def get_data(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return _unwrap(await self.request("GET", path, params=params))

    async def post_data(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return _unwrap(await self.request("POST", path, json=json))

    async def patch_data(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return _unwrap(await self.request("PATCH", path, json=json))

    async def put_data(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return _unwrap(await self.request("PUT", path, json=json))

    async def delete_data(self, path: str) -> Any:
        return _unwrap(await self.request("DELETE", path))


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body
