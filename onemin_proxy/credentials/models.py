"""Credential and session context records.

Records are persisted as JSON documents whose keys keep the wire names the
admin UI reads (``token``, ``createdAt``, ``expiresAt``, ``userInfo``).
All timestamps are epoch milliseconds.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

CREDENTIAL_PREFIX = "tokens/"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def credential_key(secret: str) -> str:
    return f"{CREDENTIAL_PREFIX}{secret}"


@dataclass
class SessionContext:
    """Upstream team/user scoping cached on a credential."""

    team_id: str
    cached_at: int
    user_id: Optional[str] = None
    user_name: Optional[str] = None

    def is_fresh(self, ttl_ms: int, now: Optional[int] = None) -> bool:
        current = now_ms() if now is None else now
        return current - self.cached_at < ttl_ms

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"teamId": self.team_id, "cachedAt": self.cached_at}
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.user_name is not None:
            data["userName"] = self.user_name
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionContext":
        return cls(
            team_id=str(data["teamId"]),
            cached_at=int(data.get("cachedAt", 0)),
            user_id=data.get("userId"),
            user_name=data.get("userName"),
        )


@dataclass
class Credential:
    """A bearer secret for the upstream provider."""

    secret: str
    note: str = ""
    created_at: int = 0
    disabled: bool = False
    expires_at: Optional[int] = None
    session_context: Optional[SessionContext] = None

    def is_expired(self, now: Optional[int] = None) -> bool:
        if self.expires_at is None:
            return False
        current = now_ms() if now is None else now
        return self.expires_at < current

    def is_usable(self, now: Optional[int] = None) -> bool:
        return not self.disabled and not self.is_expired(now)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "token": self.secret,
            "note": self.note,
            "createdAt": self.created_at,
            "disabled": self.disabled,
        }
        if self.expires_at is not None:
            data["expiresAt"] = self.expires_at
        if self.session_context is not None:
            data["userInfo"] = self.session_context.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credential":
        user_info = data.get("userInfo")
        session_context = None
        if isinstance(user_info, Mapping) and user_info.get("teamId"):
            session_context = SessionContext.from_dict(user_info)
        expires_at = data.get("expiresAt")
        return cls(
            secret=str(data["token"]),
            note=str(data.get("note") or ""),
            created_at=int(data.get("createdAt") or 0),
            disabled=bool(data.get("disabled", False)),
            expires_at=int(expires_at) if expires_at is not None else None,
            session_context=session_context,
        )
