from __future__ import annotations

import logging

from .api_client import ApiClient
from .errors import ApiError
from .models import (
    AuthResponse,
    ChangePasswordData,
    LoginCredentials,
    PasswordResetData,
    PasswordResetRequestData,
    RegisterUserData,
    TokenVerifyResponse,
)


logger = logging.getLogger(__name__)


class AuthClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def login(self, credentials: LoginCredentials) -> AuthResponse:
        data = await self.api.post_data("/api/auth/login", json=credentials.model_dump(by_alias=True))
        return AuthResponse.model_validate(data)

    async def register(self, user_data: RegisterUserData) -> AuthResponse:
        data = await self.api.post_data("/api/auth/register", json=user_data.model_dump(by_alias=True))
        return AuthResponse.model_validate(data)

    async def verify_token(self) -> TokenVerifyResponse:
        data = await self.api.post_data("/api/auth/verify-token")
        return TokenVerifyResponse.model_validate(data)

    async def change_password(self, data: ChangePasswordData) -> None:
        await self.api.patch_data("/api/auth/change-password", json=data.model_dump(by_alias=True))

    async def request_password_reset(self, data: PasswordResetRequestData) -> None:
        try:
            await self.api.post_data("/api/auth/forgot-password", json=data.model_dump(by_alias=True))
        except ApiError as e:
            # an unknown address must look exactly like a known one
            if e.status != 404:
                raise
            logger.debug("forgot-password returned 404, reporting success")

    async def reset_password(self, data: PasswordResetData) -> None:
        await self.api.post_data("/api/auth/reset-password", json=data.model_dump(by_alias=True))
