"""User value cached alongside sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Optional

from .errors import SerializationFailure


@dataclass
class User:
    """Cached user record.

    Only ``id`` and ``detail`` are persisted. The token fields are filled in
    when a user is resolved through a token and are never written to Redis.
    """

    id: str
    detail: Any = None
    token_remain_live_time: int = field(default=0, compare=False)
    token: Optional[str] = field(default=None, compare=False)
    token_expire_time: int = field(default=0, compare=False)

    def to_json(self) -> str:
        try:
            return json.dumps({"id": self.id, "detail": self.detail})
        except (TypeError, ValueError) as exc:
            raise SerializationFailure(f"Cannot encode user {self.id!r}: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str) -> "User":
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise SerializationFailure(f"Cannot decode cached user: {exc}") from exc
        if not isinstance(payload, dict):
            raise SerializationFailure("Cached user must be a JSON object")
        return cls(id=str(payload.get("id") or ""), detail=payload.get("detail"))

    def with_token(self, token: str, remain_live_time: int, expire_time: int) -> "User":
        self.token = token
        self.token_remain_live_time = remain_live_time
        self.token_expire_time = expire_time
        return self


__all__ = ["User"]
