from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .api_client import ApiClient
from .auth_client import AuthClient
from .config import Settings, settings
from .errors import ApiError, SessionExpiredError, ValidationFailed
from .guard import RouteGuard
from .list_controller import UsersListController
from .models import FieldError
from .navigation import Navigator
from .service import AccountService
from .session import SessionStore
from .storage import RedisStorage, SessionStorage, build_storage
from .users_client import UsersClient


logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


class RedirectRequired(Exception):
    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


@dataclass
class Container:
    settings: Settings
    session: SessionStore
    navigator: Navigator
    api: ApiClient
    service: AccountService
    users: UsersListController
    guard: RouteGuard


def build_container(
    cfg: Settings,
    storage: Optional[SessionStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Container:
    storage = storage or build_storage(cfg.SESSION_BACKEND, cfg.REDIS_HOST, cfg.REDIS_PORT, cfg.REDIS_PREFIX)
    session = SessionStore(storage)
    navigator = Navigator(cfg.HOME_PATH)
    api = ApiClient(
        cfg.API_BASE_URL,
        session.token_cache,
        timeout_sec=cfg.HTTP_TIMEOUT_SEC,
        login_path=cfg.LOGIN_PATH,
        transport=transport,
    )
    auth = AuthClient(api)
    users = UsersClient(api)
    users_list = UsersListController(users, page_size=cfg.USERS_PAGE_SIZE)
    service = AccountService(
        session,
        auth,
        users,
        navigator,
        login_path=cfg.LOGIN_PATH,
        home_path=cfg.HOME_PATH,
        verify_on_startup=cfg.VERIFY_TOKEN_ON_STARTUP,
        users_list=users_list,
    )
    api.on_unauthorized = service.expire_session
    return Container(
        settings=cfg,
        session=session,
        navigator=navigator,
        api=api,
        service=service,
        users=users_list,
        guard=RouteGuard(cfg.LOGIN_PATH),
    )


def create_app(cfg: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    cfg = cfg or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        c = container or build_container(cfg)
        # token cache is primed here, before any request is served
        authorized = await c.service.bootstrap()
        if not authorized:
            c.navigator.redirect(cfg.LOGIN_PATH)
        app.state.container = c
        yield
        if isinstance(c.session.storage, RedisStorage):
            await c.session.storage.close()

    app = FastAPI(title="userdesk", lifespan=lifespan)

    @app.exception_handler(RedirectRequired)
    async def _redirect(request: Request, exc: RedirectRequired):
        return RedirectResponse(exc.location, status_code=303)

    @app.exception_handler(SessionExpiredError)
    async def _expired(request: Request, exc: SessionExpiredError):
        return RedirectResponse(exc.redirect_to, status_code=303)

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError):
        if isinstance(exc, ValidationFailed):
            status = 422
        elif exc.timeout:
            status = 504
        else:
            status = exc.status or 502
        return JSONResponse(exc.to_dict(), status_code=status)

    _routes(app)
    return app


def get_container(request: Request) -> Container:
    return request.app.state.container


def require_session(c: Container = Depends(get_container)) -> Container:
    decision = c.guard.check(c.session.is_authorized)
    if not decision.allowed:
        c.navigator.redirect(decision.redirect_to)
        raise RedirectRequired(decision.redirect_to)
    return c


def _parse_age(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed("Validation failed", errors=[FieldError(field="age", message="Age must be an integer")])


def _ok(message: str, data: Any = None, c: Optional[Container] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"success": True, "message": message, "data": data}
    if c is not None:
        out["location"] = c.navigator.location
    return out


def _routes(app: FastAPI) -> None:
    # public

    @app.get("/login")
    async def login_view(c: Container = Depends(get_container)):
        if c.session.is_authorized:
            return RedirectResponse(c.settings.HOME_PATH, status_code=303)
        return {"view": "login"}

    @app.post("/login")
    async def login(payload: Dict[str, Any], c: Container = Depends(get_container)):
        user = await c.service.login(payload)
        return _ok("Login successful", user.model_dump(by_alias=True), c)

    @app.post("/register")
    async def register(payload: Dict[str, Any], c: Container = Depends(get_container)):
        user = await c.service.register(payload)
        return _ok("Registration successful", user.model_dump(by_alias=True), c)

    @app.post("/logout")
    async def logout(c: Container = Depends(get_container)):
        await c.service.logout()
        return _ok("Logged out", c=c)

    @app.post("/forgot-password")
    async def forgot_password(payload: Dict[str, Any], c: Container = Depends(get_container)):
        await c.service.request_password_reset(payload)
        return _ok("If that email is registered, a reset link has been sent")

    @app.post("/reset-password")
    async def reset_password(payload: Dict[str, Any], c: Container = Depends(get_container)):
        await c.service.reset_password(payload)
        return _ok("Password has been reset, please log in", c=c)

    # protected

    @app.get("/dashboard")
    async def dashboard(c: Container = Depends(require_session)):
        user = c.session.user
        return {"view": "dashboard", "user": user.model_dump(by_alias=True) if user else None}

    @app.get("/users")
    async def users(
        page: Optional[int] = None,
        age: Optional[str] = None,
        c: Container = Depends(require_session),
    ):
        ctrl = c.users
        # "age=" from an emptied select means no filter
        await ctrl.show(page=page, age=_parse_age(age))
        return {"view": "users", **ctrl.state()}

    @app.get("/profile")
    async def profile(c: Container = Depends(require_session)):
        user = await c.service.current_user()
        return {"view": "profile", "user": user.model_dump(by_alias=True)}

    @app.put("/profile")
    async def update_profile(payload: Dict[str, Any], c: Container = Depends(require_session)):
        user = await c.service.update_profile(payload)
        return _ok("Profile updated", user.model_dump(by_alias=True))

    @app.patch("/profile/password")
    async def change_password(payload: Dict[str, Any], c: Container = Depends(require_session)):
        await c.service.change_password(payload)
        return _ok("Password changed")

    @app.delete("/profile")
    async def delete_account(c: Container = Depends(require_session)):
        await c.service.delete_account()
        return _ok("Account deleted", c=c)


app = create_app()
