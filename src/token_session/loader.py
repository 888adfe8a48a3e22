"""User loaders consulted when the user cache misses."""

import abc
import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from .models import User

LoaderFunc = Callable[[str], Union[Optional[User], Awaitable[Optional[User]]]]


class UserLoader(abc.ABC):
    """Loads the authoritative user record for an id."""

    @abc.abstractmethod
    async def load_user(self, user_id: str) -> Optional[User]:
        """Return the user for ``user_id``; ``None`` means identity only."""


class FunctionUserLoader(UserLoader):
    """Adapts a plain function, sync or async, to :class:`UserLoader`.

    Synchronous functions usually hit a database, so they run in the
    default executor instead of blocking the event loop.
    """

    def __init__(self, func: LoaderFunc) -> None:
        self._func = func
        self._is_async = inspect.iscoroutinefunction(func)

    async def load_user(self, user_id: str) -> Optional[User]:
        if self._is_async:
            return await self._func(user_id)  # type: ignore[misc]
        loop = asyncio.get_running_loop()
        result: Any = await loop.run_in_executor(None, self._func, user_id)
        if inspect.isawaitable(result):
            result = await result
        return result


class IdentityUserLoader(UserLoader):
    """Loader that knows nothing beyond the id itself."""

    async def load_user(self, user_id: str) -> Optional[User]:
        return User(id=user_id)


def as_loader(value: Union[UserLoader, LoaderFunc, None]) -> Optional[UserLoader]:
    if value is None or isinstance(value, UserLoader):
        return value
    if callable(value):
        return FunctionUserLoader(value)
    raise TypeError(f"Unsupported user loader: {value!r}")


__all__ = ["UserLoader", "FunctionUserLoader", "IdentityUserLoader", "as_loader"]
