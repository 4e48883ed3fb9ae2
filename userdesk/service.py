from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .auth_client import AuthClient
from .errors import ApiError, SessionExpiredError, ValidationFailed
from .list_controller import UsersListController
from .models import (
    ChangePasswordData,
    LoginCredentials,
    PasswordResetData,
    PasswordResetRequestData,
    RegisterUserData,
    TokenVerifyResponse,
    UpdateUserData,
    User,
)
from .navigation import Navigator
from .session import SessionStore
from .users_client import UsersClient


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _validate(model: Type[M], payload: Union[M, Dict[str, Any]]) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e


class AccountService:
    """Auth and profile operations together with their session side effects."""

    def __init__(
        self,
        session: SessionStore,
        auth_client: AuthClient,
        users_client: UsersClient,
        navigator: Navigator,
        login_path: str = "/login",
        home_path: str = "/dashboard",
        verify_on_startup: bool = False,
        users_list: Optional[UsersListController] = None,
    ):
        self.session = session
        self.auth = auth_client
        self.users = users_client
        self.navigator = navigator
        self.login_path = login_path
        self.home_path = home_path
        self.verify_on_startup = verify_on_startup
        self.users_list = users_list

    async def bootstrap(self) -> bool:
        await self.session.load()
        if self.verify_on_startup and self.session.is_authorized:
            await self._verify_stored_token()
        return self.session.is_authorized

    async def _verify_stored_token(self) -> None:
        try:
            res = await self.auth.verify_token()
        except SessionExpiredError:
            return
        except ApiError as e:
            # server unreachable is not a reason to drop the session
            logger.warning("Token verification failed: %s", e.message)
            return
        if not res.valid:
            await self.session.clear_session()
            return
        if res.user is not None:
            if self.session.user is None:
                await self.session.set_session(res.user, self.session.token or "")
            else:
                await self.session.patch_user(res.user)

    async def expire_session(self) -> None:
        await self._end_session()

    # auth

    async def login(self, payload: Union[LoginCredentials, Dict[str, Any]]) -> User:
        creds = _validate(LoginCredentials, payload)
        res = await self.auth.login(creds)
        await self.session.set_session(res.user, res.token)
        self._reset_views()
        logger.info("Logged in. user_id=%s", res.user.id)
        self.navigator.redirect(self.home_path)
        return res.user

    async def register(self, payload: Union[RegisterUserData, Dict[str, Any]]) -> User:
        data = _validate(RegisterUserData, payload)
        res = await self.auth.register(data)
        await self.session.set_session(res.user, res.token)
        self._reset_views()
        logger.info("Registered. user_id=%s", res.user.id)
        self.navigator.redirect(self.home_path)
        return res.user

    async def logout(self) -> None:
        await self._end_session()

    async def verify_token(self) -> TokenVerifyResponse:
        return await self.auth.verify_token()

    async def change_password(self, payload: Union[ChangePasswordData, Dict[str, Any]]) -> None:
        data = _validate(ChangePasswordData, payload)
        await self.auth.change_password(data)

    async def request_password_reset(self, payload: Union[PasswordResetRequestData, Dict[str, Any]]) -> None:
        data = _validate(PasswordResetRequestData, payload)
        await self.auth.request_password_reset(data)

    async def reset_password(self, payload: Union[PasswordResetData, Dict[str, Any]]) -> None:
        data = _validate(PasswordResetData, payload)
        await self.auth.reset_password(data)
        self.navigator.redirect(self.login_path)

    # profile

    async def current_user(self) -> User:
        return await self.users.get_current_user()

    async def update_profile(self, payload: Union[UpdateUserData, Dict[str, Any]]) -> User:
        user = self._require_user()
        data = _validate(UpdateUserData, payload)
        updated = await self.users.update_user(user.id, data)
        # server record, so updatedAt and friends stay right
        await self.session.patch_user(updated)
        return updated

    async def delete_account(self) -> None:
        user = self._require_user()
        await self.users.delete_user(user.id)
        logger.info("Account deleted. user_id=%s", user.id)
        await self._end_session()

    async def _end_session(self) -> None:
        await self.session.clear_session()
        self._reset_views()
        self.navigator.redirect(self.login_path)

    def _reset_views(self) -> None:
        if self.users_list is not None:
            self.users_list.reset()

    def _require_user(self) -> User:
        user: Optional[User] = self.session.user
        if user is None:
            raise ApiError("User not found")
        return user
