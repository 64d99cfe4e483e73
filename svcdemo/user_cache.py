"""Redis-backed cache of users keyed by id."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, Union

from svcdemo.domain import User

USER_CACHE_KEY_PREFIX = "user:id:"

_ZERO_TIME = "0001-01-01T00:00:00Z"
_FRACTION = re.compile(r"\.(\d{1,9})")


class CacheError(Exception):
    """Raised when a cache operation fails."""


class UserCache(ABC):
    """Caches users by id."""

    @abstractmethod
    def set_user(self, user: User, ttl: int = 0) -> None:
        """Store ``user``; ``ttl`` in seconds, 0 meaning no expiry."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Return the cached user or None when absent."""

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        """Remove the cached user."""


def build_user_key(user_id: str) -> str:
    """Return the cache key for a user id."""
    return USER_CACHE_KEY_PREFIX + user_id


def _format_time(value: Optional[datetime]) -> str:
    return _ZERO_TIME if value is None else value.isoformat()


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or value == "" or value == _ZERO_TIME:
        return None
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def serialize_user(user: User) -> str:
    """Encode a user as JSON."""
    try:
        return json.dumps(
            {
                "ID": user.id,
                "Username": user.username,
                "Email": user.email,
                "CreatedAt": _format_time(user.created_at),
                "UpdatedAt": _format_time(user.updated_at),
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError, AttributeError) as exc:
        raise CacheError(f"failed to serialize user: {exc}") from exc


def deserialize_user(data: Union[str, bytes, None]) -> Optional[User]:
    """Decode JSON into a user; empty input gives None."""
    if not data:
        return None
    try:
        raw = json.loads(data)
        if not isinstance(raw, dict):
            raise ValueError("user payload is not an object")
        return User(
            id=raw.get("ID", ""),
            username=raw.get("Username", ""),
            email=raw.get("Email", ""),
            created_at=_parse_time(raw.get("CreatedAt")),
            updated_at=_parse_time(raw.get("UpdatedAt")),
        )
    except (ValueError, TypeError) as exc:
        raise CacheError(f"failed to deserialize user: {exc}") from exc


class UserRedisCache(UserCache):
    """User cache over a client with the redis ``set``/``get``/``delete`` interface."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def set_user(self, user: Optional[User], ttl: int = 0) -> None:
        if user is None or not user.id:
            raise CacheError("user or user ID is empty")
        data = serialize_user(user)
        expiry = ttl if ttl > 0 else None
        try:
            self._client.set(build_user_key(user.id), data, ex=expiry)
        except Exception as exc:
            raise CacheError(f"failed to set user cache: {exc}") from exc

    def get_user(self, user_id: str) -> Optional[User]:
        if not user_id:
            raise CacheError("user ID is empty")
        try:
            data = self._client.get(build_user_key(user_id))
        except Exception as exc:
            raise CacheError(f"failed to get user cache: {exc}") from exc
        return deserialize_user(data)

    def delete_user(self, user_id: str) -> None:
        if not user_id:
            raise CacheError("user ID is empty")
        try:
            self._client.delete(build_user_key(user_id))
        except Exception as exc:
            raise CacheError(f"failed to delete user cache: {exc}") from exc