"""Exception types raised by the session manager."""


class SessionError(Exception):
    """Base class for every error raised by ``token_session``."""


class InvalidArgument(SessionError, ValueError):
    """An empty or malformed user id or token was supplied."""


class CorruptRecord(SessionError):
    """A token record points at a user other than the one embedded in the token."""


class NotConfigured(SessionError):
    """A required collaborator, such as the user loader, is missing."""


class StoreUnavailable(SessionError):
    """Redis could not be reached or rejected a command."""


class SerializationFailure(SessionError):
    """A user payload could not be encoded or decoded."""


__all__ = [
    "SessionError",
    "InvalidArgument",
    "CorruptRecord",
    "NotConfigured",
    "StoreUnavailable",
    "SerializationFailure",
]
