from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Union

from .models import User
from .storage import SESSION_KEY, TOKEN_KEY, SessionStorage


logger = logging.getLogger(__name__)

_FIELD_NAMES = {"createdAt": "created_at", "updatedAt": "updated_at"}


class TokenCache:
    """Synchronously readable copy of the bearer token.

    The HTTP client reads from here on every request, so it has to be
    populated before the first request goes out, even while the persisted
    session object is still being loaded.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token or None

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: Optional[str]) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None


class SessionStore:
    def __init__(self, storage: SessionStorage, token_cache: Optional[TokenCache] = None):
        self.storage = storage
        self.token_cache = token_cache or TokenCache()
        self._user: Optional[User] = None
        self._token: Optional[str] = None

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authorized(self) -> bool:
        return bool(self._token)

    async def load(self) -> None:
        """Rehydrate from storage. Token validity is not checked here."""
        cached = await self.storage.get(TOKEN_KEY)
        self.token_cache.set(cached)

        raw = await self.storage.get(SESSION_KEY)
        user, token = None, cached
        if raw:
            try:
                data = json.loads(raw)
                token = data.get("token") or None
                if data.get("user"):
                    user = User.model_validate(data["user"])
            except (ValueError, AttributeError):
                logger.warning("Persisted session is unreadable, starting logged out")
                user, token = None, None

        # the combined object wins; the side channel only covers a missing one
        self._token = token
        self._user = user
        self.token_cache.set(self._token)
        logger.info("Session loaded. authorized=%s user_id=%s", self.is_authorized, user.id if user else None)

    async def set_session(self, user: User, token: str) -> None:
        self._user = user
        self._token = token
        self.token_cache.set(token)
        await self.storage.set(TOKEN_KEY, token)
        await self._persist()

    async def clear_session(self) -> None:
        was_authorized = self.is_authorized
        self._user = None
        self._token = None
        self.token_cache.clear()
        await self.storage.delete(TOKEN_KEY)
        await self.storage.delete(SESSION_KEY)
        if was_authorized:
            logger.info("Session cleared")

    async def patch_user(self, fields: Union[User, Dict[str, Any]]) -> None:
        """Shallow-merge profile fields into the current user. No-op when logged out."""
        if self._user is None:
            return
        if isinstance(fields, User):
            fields = fields.model_dump()
        merged = self._user.model_dump()
        for key, value in fields.items():
            merged[_FIELD_NAMES.get(key, key)] = value
        self._user = User.model_validate(merged)
        await self._persist()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "user": self._user.model_dump(by_alias=True) if self._user else None,
            "token": self._token,
        }

    async def _persist(self) -> None:
        # is_authorized is derived, never written
        await self.storage.set(SESSION_KEY, json.dumps(self.snapshot()))

