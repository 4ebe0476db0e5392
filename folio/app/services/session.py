from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

SessionState = Literal["anonymous", "authenticated"]


@dataclass(frozen=True)
class Session:
    user_id: str | None = None
    token: str | None = None

    @classmethod
    def anonymous(cls) -> Session:
        return cls()

    @classmethod
    def for_user(cls, user_id: str, *, token: str | None = None) -> Session:
        return cls(user_id=user_id, token=token)

    @property
    def state(self) -> SessionState:
        return "authenticated" if self.user_id is not None else "anonymous"

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
