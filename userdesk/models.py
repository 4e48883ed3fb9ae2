from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


NAME_PATTERN = r"^[a-zA-Z\s]+$"
PASSWORD_PATTERN = r"^\S+$"


class _Camel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class User(_Camel):
    id: str
    name: str
    email: str
    age: int
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class AuthResponse(_Camel):
    user: User
    token: str


class TokenVerifyResponse(_Camel):
    valid: bool
    user: Optional[User] = None


class FieldError(_Camel):
    field: Optional[str] = None
    message: str


class PaginationMeta(_Camel):
    page: int = 1
    limit: int
    total: int = 0
    total_pages: Optional[int] = Field(default=None, alias="totalPages")
    has_next: Optional[bool] = Field(default=None, alias="hasNext")
    has_prev: Optional[bool] = Field(default=None, alias="hasPrev")

    @model_validator(mode="after")
    def _derive(self) -> "PaginationMeta":
        # older backends only send page/limit/total/totalPages
        if self.total_pages is None:
            self.total_pages = math.ceil(self.total / self.limit) if self.limit > 0 else 0
        if self.has_next is None:
            self.has_next = self.page < self.total_pages
        if self.has_prev is None:
            self.has_prev = self.page > 1
        return self


class UsersPage(_Camel):
    items: List[User] = Field(default_factory=list, alias="data")
    pagination: PaginationMeta


# ---- request payloads, same rules as the backend ----


def _normalize_email(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().lower()
    return v


class LoginCredentials(_Camel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v: Any) -> Any:
        return _normalize_email(v)


class RegisterUserData(_Camel):
    name: str = Field(min_length=2, max_length=100, pattern=NAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128, pattern=PASSWORD_PATTERN)
    age: int = Field(ge=13, le=120)

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v: Any) -> Any:
        return _normalize_email(v)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class ChangePasswordData(_Camel):
    current_password: str = Field(min_length=1, alias="currentPassword")
    new_password: str = Field(min_length=6, max_length=128, pattern=PASSWORD_PATTERN, alias="newPassword")


class PasswordResetRequestData(_Camel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v: Any) -> Any:
        return _normalize_email(v)


class PasswordResetData(_Camel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128, pattern=PASSWORD_PATTERN, alias="newPassword")


class UpdateUserData(_Camel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100, pattern=NAME_PATTERN)
    age: Optional[int] = Field(default=None, ge=13, le=120)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
