"""User-info cache filled from a :class:`UserLoader`."""

import logging
from typing import Iterable, Optional

import redis.asyncio as redis

from .errors import NotConfigured
from .keys import KeyNamespace, validate_user_id
from .loader import UserLoader
from .models import User
from .store import as_text, store_errors

logger = logging.getLogger("token_session.user_cache")


class UserCache:
    """Stores serialized users under ``{user_prefix}_{user_id}``."""

    def __init__(
        self,
        client: "redis.Redis",
        keys: KeyNamespace,
        *,
        default_ttl: int,
        loader: Optional[UserLoader] = None,
    ) -> None:
        self._redis = client
        self._keys = keys
        self._default_ttl = default_ttl
        self.loader = loader

    async def fill_and_cache(self, user_id: str, ttl_seconds: int = 0) -> User:
        """Load ``user_id`` through the loader and cache it for ``ttl_seconds``."""
        if self.loader is None:
            raise NotConfigured("No user loader configured")
        validate_user_id(user_id)

        user = await self.loader.load_user(user_id)
        if user is None:
            user = User(id=user_id)
        user.id = user_id

        if ttl_seconds <= 0:
            ttl_seconds = self._default_ttl

        raw = user.to_json()
        user_key = self._keys.user_key(user_id)
        async with store_errors(f"cache user {user_id}"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(user_key, raw)
                pipe.expire(user_key, ttl_seconds)
                await pipe.execute()

        logger.debug("Cached user %s for %ss", user_id, ttl_seconds)
        return user

    async def get_cached(self, user_id: str) -> Optional[User]:
        validate_user_id(user_id)
        async with store_errors(f"read cached user {user_id}"):
            raw = as_text(await self._redis.get(self._keys.user_key(user_id)))
        if raw is None:
            return None
        user = User.from_json(raw)
        user.id = user_id
        return user

    async def refresh_many(self, user_ids: Iterable[str], ttl_seconds: int = 0) -> None:
        """Refill each user in turn, stopping at the first failure."""
        for user_id in user_ids:
            await self.fill_and_cache(user_id, ttl_seconds)

    async def forget(self, user_id: str) -> None:
        validate_user_id(user_id)
        async with store_errors(f"delete cached user {user_id}"):
            await self._redis.delete(self._keys.user_key(user_id))
        logger.debug("Removed cached user %s", user_id)


__all__ = ["UserCache"]
