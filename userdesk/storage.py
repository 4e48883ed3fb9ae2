from __future__ import annotations

from typing import Dict, Optional, Protocol

import redis.asyncio as redis


TOKEN_KEY = "authToken"
SESSION_KEY = "auth-storage"


class SessionStorage(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStorage:
    """Keeps session keys for the lifetime of the process."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class RedisStorage:
    def __init__(self, host: str, port: int, prefix: str = "", client: Optional[redis.Redis] = None):
        self.r = client or redis.Redis(host=host, port=port, decode_responses=True)
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        raw = await self.r.get(self._key(key))
        return raw or None

    async def set(self, key: str, value: str) -> None:
        # no TTL: the session outlives restarts until logout or a 401
        await self.r.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self.r.delete(self._key(key))

    async def close(self) -> None:
        await self.r.aclose()


def build_storage(backend: str, host: str = "localhost", port: int = 6379, prefix: str = "") -> SessionStorage:
    if backend == "redis":
        return RedisStorage(host, port, prefix)
    if backend == "memory":
        return MemoryStorage()
    raise ValueError(f"unknown session backend: {backend!r}")
