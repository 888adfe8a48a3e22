"""Redis-backed token sessions with a lazily filled user cache."""

import logging
from typing import Mapping, Optional, Union

from .config import (
    RedisSettings,
    SessionSettings,
    load_redis_settings,
    load_session_settings,
)
from .errors import (
    CorruptRecord,
    InvalidArgument,
    NotConfigured,
    SerializationFailure,
    SessionError,
    StoreUnavailable,
)
from .keys import KeyNamespace, TokenParts, parse_token, validate_user_id
from .loader import FunctionUserLoader, IdentityUserLoader, LoaderFunc, UserLoader
from .maintenance import MaintenanceTasks
from .models import User
from .session import SessionManager, SessionManagerBuilder
from .store import create_redis_client, verify_connection

logger = logging.getLogger("token_session")


def create_session_manager(
    env: Optional[Mapping[str, str]] = None,
    loader: Union[UserLoader, LoaderFunc, None] = None,
) -> SessionManager:
    """Create a session manager configured from the environment.

    The manager owns its Redis client; call ``aclose()`` when done.
    """
    settings = load_session_settings(env)
    redis_settings = load_redis_settings(env)
    client = create_redis_client(redis_settings)

    logger.info(
        "Session manager ready (token_prefix=%s user_prefix=%s single_mode=%s)",
        settings.token_prefix,
        settings.user_prefix,
        settings.single_mode,
    )
    return SessionManager(client, settings, loader, owns_client=True)


__all__ = [
    "CorruptRecord",
    "FunctionUserLoader",
    "IdentityUserLoader",
    "InvalidArgument",
    "KeyNamespace",
    "MaintenanceTasks",
    "NotConfigured",
    "RedisSettings",
    "SerializationFailure",
    "SessionError",
    "SessionManager",
    "SessionManagerBuilder",
    "SessionSettings",
    "StoreUnavailable",
    "TokenParts",
    "User",
    "UserLoader",
    "create_redis_client",
    "create_session_manager",
    "load_redis_settings",
    "load_session_settings",
    "parse_token",
    "validate_user_id",
    "verify_connection",
]
