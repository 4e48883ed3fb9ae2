from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str | None:
    cur = Path(__file__).resolve()
    for parent in [cur.parent, *cur.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            return str(candidate)
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file() or ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # backend
    API_BASE_URL: str = "http://localhost:3000"
    HTTP_TIMEOUT_SEC: float = 10.0

    # session persistence: "memory" | "redis"
    SESSION_BACKEND: str = "memory"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PREFIX: str = "userdesk:"

    # views
    USERS_PAGE_SIZE: int = 9
    LOGIN_PATH: str = "/login"
    HOME_PATH: str = "/dashboard"

    # optimistic rehydration unless set; a stale token is then found by the next 401
    VERIFY_TOKEN_ON_STARTUP: bool = False

    LOG_LEVEL: str = "INFO"


settings = Settings()
