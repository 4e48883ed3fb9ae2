from __future__ import annotations

from typing import Optional

from .api_client import ApiClient
from .models import UpdateUserData, User, UsersPage
from .pagination import UsersQuery


class UsersClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def get_current_user(self) -> User:
        return User.model_validate(await self.api.get_data("/api/auth/me"))

    async def list_users(self, query: Optional[UsersQuery] = None) -> UsersPage:
        query = query or UsersQuery()
        # the list endpoint keeps data and pagination side by side, no unwrapping
        body = await self.api.request("GET", "/api/users", params=query.to_params())
        return UsersPage.model_validate(body)

    async def update_user(self, user_id: str, data: UpdateUserData) -> User:
        return User.model_validate(await self.api.put_data(f"/api/users/{user_id}", json=data.payload()))

    async def delete_user(self, user_id: str) -> None:
        await self.api.delete_data(f"/api/users/{user_id}")
