"""Environment helpers for session and Redis configuration."""

from dataclasses import dataclass, field
import logging
import os
from typing import Mapping, Optional

from .errors import InvalidArgument
from .keys import normalise_prefix

logger = logging.getLogger("token_session.config")

DEFAULT_TOKEN_PREFIX = "ts-t"
DEFAULT_USER_PREFIX = "ts-u"
DEFAULT_TTL_SECONDS = 3600 * 24 * 7
DEFAULT_INDEX_TTL_SECONDS = 3600 * 24 * 30

DEFAULT_REDIS_HOST = "127.0.0.1:6379"
DEFAULT_MAX_CONNECTIONS = 20
DEFAULT_TIMEOUT_SECONDS = 1.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class SessionSettings:
    token_prefix: str = DEFAULT_TOKEN_PREFIX
    user_prefix: str = DEFAULT_USER_PREFIX
    default_ttl: int = DEFAULT_TTL_SECONDS
    index_ttl: int = DEFAULT_INDEX_TTL_SECONDS
    single_mode: bool = False
    background_maintenance: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "token_prefix", normalise_prefix(self.token_prefix))
        object.__setattr__(self, "user_prefix", normalise_prefix(self.user_prefix))
        if self.default_ttl <= 0:
            raise InvalidArgument("default_ttl must be > 0")
        if self.index_ttl <= 0:
            raise InvalidArgument("index_ttl must be > 0")


@dataclass(frozen=True)
class RedisSettings:
    """Connection parameters for the Redis collaborator.

    In Sentinel mode (``sentinel_master`` set) ``hosts`` lists the Sentinel
    addresses rather than Redis servers.
    """

    url: Optional[str] = None
    hosts: tuple[str, ...] = field(default=(DEFAULT_REDIS_HOST,))
    db: int = 0
    password: Optional[str] = None
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout: float = DEFAULT_TIMEOUT_SECONDS
    socket_timeout: float = DEFAULT_TIMEOUT_SECONDS
    sentinel_master: Optional[str] = None

    @property
    def is_sentinel(self) -> bool:
        return bool(self.sentinel_master)


def load_session_settings(env: Optional[Mapping[str, str]] = None) -> SessionSettings:
    env = _ensure_env(env)
    return SessionSettings(
        token_prefix=env.get("TOKEN_SESSION_TOKEN_PREFIX") or DEFAULT_TOKEN_PREFIX,
        user_prefix=env.get("TOKEN_SESSION_USER_PREFIX") or DEFAULT_USER_PREFIX,
        default_ttl=_parse_int(env, "TOKEN_SESSION_DEFAULT_TTL", default=DEFAULT_TTL_SECONDS),
        index_ttl=_parse_int(env, "TOKEN_SESSION_INDEX_TTL", default=DEFAULT_INDEX_TTL_SECONDS),
        single_mode=_parse_bool(env, "TOKEN_SESSION_SINGLE_MODE", default=False),
        background_maintenance=_parse_bool(env, "TOKEN_SESSION_BACKGROUND_MAINTENANCE", default=True),
    )


def load_redis_settings(env: Optional[Mapping[str, str]] = None) -> RedisSettings:
    env = _ensure_env(env)

    hosts = tuple(host.strip() for host in (env.get("REDIS_HOSTS") or "").split(",") if host.strip())
    sentinel_master = env.get("REDIS_SENTINEL_MASTER") or None
    url = env.get("REDIS_URL") or None
    if url and sentinel_master:
        logger.warning("REDIS_URL is ignored when REDIS_SENTINEL_MASTER is set")
        url = None

    return RedisSettings(
        url=url,
        hosts=hosts or (DEFAULT_REDIS_HOST,),
        db=_parse_int(env, "REDIS_DB", default=0, minimum=0),
        password=env.get("REDIS_PASSWORD") or None,
        max_connections=_parse_int(env, "REDIS_MAX_CONNECTIONS", default=DEFAULT_MAX_CONNECTIONS),
        connect_timeout=_parse_float(env, "REDIS_CONNECT_TIMEOUT", default=DEFAULT_TIMEOUT_SECONDS),
        socket_timeout=_parse_float(env, "REDIS_SOCKET_TIMEOUT", default=DEFAULT_TIMEOUT_SECONDS),
        sentinel_master=sentinel_master,
    )


def split_host(address: str, default_port: int = 6379) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, default_port
    try:
        return host, int(port)
    except ValueError:
        raise InvalidArgument(f"Invalid port in Redis address {address!r}") from None


def _ensure_env(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return env if env is not None else os.environ


def _parse_int(env: Mapping[str, str], env_key: str, *, default: int, minimum: int = 1) -> int:
    value = env.get(env_key)
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("%s must be an integer; using default %s", env_key, default)
        return default
    if parsed < minimum:
        logger.warning("%s must be >= %s; using default %s", env_key, minimum, default)
        return default
    return parsed


def _parse_float(env: Mapping[str, str], env_key: str, *, default: float) -> float:
    value = env.get(env_key)
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        logger.warning("%s must be a number; using default %.2f", env_key, default)
        return default
    if parsed <= 0:
        logger.warning("%s must be > 0; using default %.2f", env_key, default)
        return default
    return parsed


def _parse_bool(env: Mapping[str, str], env_key: str, *, default: bool) -> bool:
    value = env.get(env_key)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning("%s must be a boolean; using default %s", env_key, default)
    return default


__all__ = [
    "DEFAULT_INDEX_TTL_SECONDS",
    "DEFAULT_TOKEN_PREFIX",
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_USER_PREFIX",
    "RedisSettings",
    "SessionSettings",
    "load_redis_settings",
    "load_session_settings",
    "split_host",
]
