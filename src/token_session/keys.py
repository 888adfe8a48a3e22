"""Key derivation and token parsing."""

from dataclasses import dataclass
import uuid

from .errors import InvalidArgument

DELIMITER = "_"


@dataclass(frozen=True)
class TokenParts:
    user_id: str
    opaque: str


def normalise_prefix(prefix: str) -> str:
    """Replace the field delimiter in a configured prefix with a hyphen."""
    normalised = (prefix or "").replace(DELIMITER, "-")
    if not normalised:
        raise InvalidArgument("key prefix must not be empty")
    return normalised


def validate_user_id(user_id: str) -> str:
    """Enforce the identifier policy: non-empty, no delimiter, no whitespace."""
    if not user_id:
        raise InvalidArgument("user id is empty")
    if DELIMITER in user_id:
        raise InvalidArgument(f"user id {user_id!r} must not contain {DELIMITER!r}")
    if any(ch.isspace() for ch in user_id):
        raise InvalidArgument(f"user id {user_id!r} must not contain whitespace")
    return user_id


def parse_token(token: str) -> TokenParts:
    """Split ``token`` into its owner and opaque parts.

    The owner is everything before the first delimiter and must itself be a
    valid user id.
    """
    if not token:
        raise InvalidArgument("token is empty")
    user_id, sep, opaque = token.partition(DELIMITER)
    if not sep or not user_id:
        raise InvalidArgument("token is malformed")
    validate_user_id(user_id)
    return TokenParts(user_id=user_id, opaque=opaque)


def new_token(user_id: str) -> str:
    return f"{user_id}{DELIMITER}{uuid.uuid4().hex}"


@dataclass(frozen=True)
class KeyNamespace:
    """Derives Redis keys from the configured prefixes."""

    token_prefix: str
    user_prefix: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "token_prefix", normalise_prefix(self.token_prefix))
        object.__setattr__(self, "user_prefix", normalise_prefix(self.user_prefix))

    def token_key(self, token: str) -> str:
        return f"{self.token_prefix}{DELIMITER}{token}"

    def user_key(self, user_id: str) -> str:
        return f"{self.user_prefix}{DELIMITER}{user_id}"

    def user_index_key(self, user_id: str) -> str:
        return f"{self.token_prefix}{DELIMITER}{user_id}"


__all__ = [
    "DELIMITER",
    "KeyNamespace",
    "TokenParts",
    "new_token",
    "normalise_prefix",
    "parse_token",
    "validate_user_id",
]
