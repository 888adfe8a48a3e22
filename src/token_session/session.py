"""Public session manager combining tokens and the user cache."""

from dataclasses import replace
import logging
import time
from typing import Callable, Iterable, Optional, Union

import redis.asyncio as redis

from .config import SessionSettings
from .keys import KeyNamespace
from .loader import LoaderFunc, UserLoader, as_loader
from .maintenance import MaintenanceTasks
from .models import User
from .token_store import TokenStore
from .user_cache import UserCache

logger = logging.getLogger("token_session")


class SessionManager:
    """Token sessions and cached user info behind one object.

    Settings are fixed at construction; use :class:`SessionManagerBuilder` for
    chained configuration.
    """

    def __init__(
        self,
        client: "redis.Redis",
        settings: Optional[SessionSettings] = None,
        loader: Union[UserLoader, LoaderFunc, None] = None,
        *,
        maintenance: Optional[MaintenanceTasks] = None,
        owns_client: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or SessionSettings()
        self.keys = KeyNamespace(self.settings.token_prefix, self.settings.user_prefix)
        self.maintenance = maintenance or MaintenanceTasks(enabled=self.settings.background_maintenance)
        self._redis = client
        self._owns_client = owns_client

        self.user_cache = UserCache(
            client,
            self.keys,
            default_ttl=self.settings.default_ttl,
            loader=as_loader(loader),
        )
        self.tokens = TokenStore(
            client,
            self.keys,
            self.user_cache,
            default_ttl=self.settings.default_ttl,
            index_ttl=self.settings.index_ttl,
            single_mode=self.settings.single_mode,
            maintenance=self.maintenance,
            clock=clock,
        )

    @property
    def client(self) -> "redis.Redis":
        return self._redis

    @property
    def loader(self) -> Optional[UserLoader]:
        return self.user_cache.loader

    async def issue_token(self, user_id: str, ttl_seconds: int = 0) -> str:
        return await self.tokens.issue_token(user_id, ttl_seconds)

    async def refresh_token(self, token: str, ttl_seconds: int = 0) -> bool:
        return await self.tokens.refresh_token(token, ttl_seconds)

    async def revoke_token(self, token: str) -> None:
        await self.tokens.revoke_token(token)

    async def revoke_user_tokens(self, user_id: str) -> None:
        await self.tokens.revoke_user_tokens(user_id)

    async def list_user_tokens(self, user_id: str) -> list[str]:
        return await self.tokens.list_user_tokens(user_id)

    async def check_token(self, token: str) -> Optional[User]:
        return await self.tokens.check_token(token)

    async def check_token_and_load_user(self, token: str, user_info_ttl: int) -> Optional[User]:
        return await self.tokens.check_token_and_load_user(token, user_info_ttl)

    async def fill_user(self, user_id: str, ttl_seconds: int = 0) -> User:
        return await self.user_cache.fill_and_cache(user_id, ttl_seconds)

    async def refresh_users(self, user_ids: Iterable[str], ttl_seconds: int = 0) -> None:
        await self.user_cache.refresh_many(user_ids, ttl_seconds)

    async def forget_user(self, user_id: str) -> None:
        await self.user_cache.forget(user_id)

    async def aclose(self) -> None:
        await self.maintenance.close()
        if self._owns_client:
            await self._redis.aclose()
            logger.debug("Redis connection closed")


class SessionManagerBuilder:
    """Chained configuration producing a :class:`SessionManager`.

    Any ``redis.asyncio`` client works; replies are decoded whether or not it
    was created with ``decode_responses=True``.

    Example::

        manager = (
            SessionManagerBuilder(client)
            .token_prefix("app-t")
            .default_ttl(3600)
            .user_loader(load_user)
            .single_mode()
            .build()
        )
    """

    def __init__(self, client: "redis.Redis", settings: Optional[SessionSettings] = None) -> None:
        self._client = client
        self._settings = settings or SessionSettings()
        self._loader: Union[UserLoader, LoaderFunc, None] = None
        self._maintenance: Optional[MaintenanceTasks] = None
        self._clock: Callable[[], float] = time.time

    def token_prefix(self, prefix: str) -> "SessionManagerBuilder":
        self._settings = replace(self._settings, token_prefix=prefix)
        return self

    def user_prefix(self, prefix: str) -> "SessionManagerBuilder":
        self._settings = replace(self._settings, user_prefix=prefix)
        return self

    def default_ttl(self, seconds: int) -> "SessionManagerBuilder":
        if seconds <= 0:
            logger.warning("Ignoring non-positive default TTL %s", seconds)
            return self
        self._settings = replace(self._settings, default_ttl=seconds)
        return self

    def index_ttl(self, seconds: int) -> "SessionManagerBuilder":
        if seconds <= 0:
            logger.warning("Ignoring non-positive index TTL %s", seconds)
            return self
        self._settings = replace(self._settings, index_ttl=seconds)
        return self

    def user_loader(self, loader: Union[UserLoader, LoaderFunc, None]) -> "SessionManagerBuilder":
        if loader is not None:
            self._loader = loader
        return self

    def single_mode(self, enabled: bool = True) -> "SessionManagerBuilder":
        self._settings = replace(self._settings, single_mode=enabled)
        return self

    def background_maintenance(self, enabled: bool = True) -> "SessionManagerBuilder":
        self._settings = replace(self._settings, background_maintenance=enabled)
        return self

    def maintenance(self, tasks: MaintenanceTasks) -> "SessionManagerBuilder":
        self._maintenance = tasks
        return self

    def clock(self, clock: Callable[[], float]) -> "SessionManagerBuilder":
        self._clock = clock
        return self

    def build(self) -> SessionManager:
        return SessionManager(
            self._client,
            self._settings,
            self._loader,
            maintenance=self._maintenance,
            clock=self._clock,
        )


__all__ = ["SessionManager", "SessionManagerBuilder"]
