from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect_to: Optional[str] = None


class RouteGuard:
    def __init__(self, login_path: str = "/login"):
        self.login_path = login_path

    def check(self, is_authorized: bool) -> GuardDecision:
        if is_authorized:
            return GuardDecision(allowed=True)
        return GuardDecision(allowed=False, redirect_to=self.login_path)
