"""Token issuance, refresh, revocation and lookup on top of Redis.

Each token has two pieces of state:

* the token record ``{token_prefix}_{token}``, whose value is the owner's user
  key and whose Redis TTL decides whether the token is still valid;
* an entry in the owner's index hash ``{token_prefix}_{user_id}`` mapping the
  token to its absolute expiry in epoch seconds.

Writes touching both are sent as a single MULTI/EXEC pipeline. Index entries
that outlive their recorded expiry are removed whenever the index is read.
"""

import logging
import time
from typing import Callable, Optional

import redis.asyncio as redis

from .errors import CorruptRecord
from .keys import KeyNamespace, new_token, parse_token, validate_user_id
from .maintenance import MaintenanceTasks
from .models import User
from .store import as_text, store_errors
from .user_cache import UserCache

logger = logging.getLogger("token_session.tokens")

# A record with this many seconds or fewer left is treated as already expired.
MIN_REMAINING_TTL = 1


class TokenStore:
    def __init__(
        self,
        client: "redis.Redis",
        keys: KeyNamespace,
        user_cache: UserCache,
        *,
        default_ttl: int,
        index_ttl: int,
        single_mode: bool = False,
        maintenance: Optional[MaintenanceTasks] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._keys = keys
        self._user_cache = user_cache
        self._default_ttl = default_ttl
        self._index_ttl = index_ttl
        self._single_mode = single_mode
        self._maintenance = maintenance
        self._clock = clock

    @property
    def single_mode(self) -> bool:
        return self._single_mode

    def _now(self) -> int:
        return int(self._clock())

    async def issue_token(self, user_id: str, ttl_seconds: int = 0) -> str:
        """Create a token for ``user_id`` valid for ``ttl_seconds``.

        In single mode every other token of the user is revoked first and a
        failed revocation aborts issuance. An exception means no token was
        issued, even if part of the batch reached Redis.
        """
        validate_user_id(user_id)
        token = new_token(user_id)

        if self._single_mode:
            await self.revoke_user_tokens(user_id)

        if ttl_seconds <= 0:
            ttl_seconds = self._default_ttl

        index_key = self._keys.user_index_key(user_id)
        async with store_errors(f"issue token for user {user_id}"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(self._keys.token_key(token), self._keys.user_key(user_id), ex=ttl_seconds)
                pipe.hset(index_key, token, self._now() + ttl_seconds)
                pipe.expire(index_key, self._index_ttl)
                await pipe.execute()

        logger.debug("Issued token %s*** for user %s (ttl=%ss)", token[:20], user_id, ttl_seconds)

        if not self._single_mode and self._maintenance is not None:
            self._maintenance.schedule(f"sweep-index:{user_id}", self.list_user_tokens(user_id))
        return token

    async def refresh_token(self, token: str, ttl_seconds: int = 0) -> bool:
        """Reset the TTL of ``token`` to ``ttl_seconds``.

        Returns ``False`` when the token record no longer exists. Redis will
        not recreate it, and the index entry written alongside is removed.
        """
        user_id = parse_token(token).user_id
        if ttl_seconds <= 0:
            ttl_seconds = self._default_ttl

        index_key = self._keys.user_index_key(user_id)
        async with store_errors(f"refresh token for user {user_id}"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.expire(self._keys.token_key(token), ttl_seconds)
                pipe.hset(index_key, token, self._now() + ttl_seconds)
                pipe.expire(index_key, self._index_ttl)
                refreshed, _, _ = await pipe.execute()

            if not refreshed:
                await self._redis.hdel(index_key, token)
                logger.debug("Token %s*** was already gone; dropped its index entry", token[:20])
                return False

        logger.debug("Refreshed token %s*** (ttl=%ss)", token[:20], ttl_seconds)
        return True

    async def revoke_token(self, token: str) -> None:
        user_id = parse_token(token).user_id
        async with store_errors(f"revoke token for user {user_id}"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(self._keys.token_key(token))
                pipe.hdel(self._keys.user_index_key(user_id), token)
                await pipe.execute()
        logger.debug("Revoked token %s***", token[:20])

    async def revoke_user_tokens(self, user_id: str) -> None:
        tokens = await self.list_user_tokens(user_id)
        if not tokens:
            return

        index_key = self._keys.user_index_key(user_id)
        async with store_errors(f"revoke tokens for user {user_id}"):
            async with self._redis.pipeline(transaction=True) as pipe:
                for token in tokens:
                    pipe.delete(self._keys.token_key(token))
                    pipe.hdel(index_key, token)
                await pipe.execute()
        logger.debug("Revoked %s tokens for user %s", len(tokens), user_id)

    async def list_user_tokens(self, user_id: str) -> list[str]:
        """Return the live tokens of ``user_id``, oldest expiry first.

        Index entries whose recorded expiry has passed are deleted as part of
        the read.
        """
        validate_user_id(user_id)
        index_key = self._keys.user_index_key(user_id)
        now = self._now()

        async with store_errors(f"list tokens for user {user_id}"):
            entries = await self._redis.hgetall(index_key)

            live: list[tuple[int, str]] = []
            stale: list[str] = []
            for raw_token, raw_expiry in entries.items():
                token = as_text(raw_token)
                expiry = _parse_expiry(raw_expiry)
                if expiry <= now:
                    stale.append(token)
                else:
                    live.append((expiry, token))

            if stale:
                await self._redis.hdel(index_key, *stale)
                logger.debug("Swept %s stale index entries for user %s", len(stale), user_id)

        return [token for _, token in sorted(live)]

    async def check_token(self, token: str) -> Optional[User]:
        """Resolve ``token`` to its owner without touching the user cache."""
        return await self.check_token_and_load_user(token, -1)

    async def check_token_and_load_user(self, token: str, user_info_ttl: int) -> Optional[User]:
        """Resolve ``token`` and attach the cached user, filling the cache on a miss.

        A negative ``user_info_ttl`` skips the cache. Returns ``None`` when the
        token is unknown, about to expire, or missing from the index.
        """
        user_id = parse_token(token).user_id
        token_key = self._keys.token_key(token)
        index_key = self._keys.user_index_key(user_id)

        async with store_errors(f"check token for user {user_id}"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.get(token_key)
                pipe.ttl(token_key)
                raw_owner, remaining = await pipe.execute()
            owner_key = as_text(raw_owner)

            if owner_key is None or remaining <= MIN_REMAINING_TTL:
                await self._redis.hdel(index_key, token)
                return None

            if owner_key != self._keys.user_key(user_id):
                raise CorruptRecord(f"Token record for user {user_id} points at {owner_key!r}")

            raw_expiry = as_text(await self._redis.hget(index_key, token))

        if raw_expiry is None:
            logger.debug("Token %s*** has no index entry", token[:20])
            return None
        expire_time = _parse_expiry(raw_expiry)

        if self._user_cache.loader is None or user_info_ttl < 0:
            return User(id=user_id).with_token(token, remaining, expire_time)

        user = await self._user_cache.get_cached(user_id)
        if user is None:
            user = await self._user_cache.fill_and_cache(user_id, user_info_ttl)
        return user.with_token(token, remaining, expire_time)


def _parse_expiry(raw: object) -> int:
    try:
        return int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


__all__ = ["TokenStore", "MIN_REMAINING_TTL"]
