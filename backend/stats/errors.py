"""Error taxonomy for the stats engine.

Store-level failures (ConflictError, StoreFailureError) are raised by the
store implementation and re-exported here so callers handle one family.
"""

from shared.dal.errors import ConflictError, StoreError, StoreFailureError

SESSION_UNAVAILABLE_MESSAGE = "cannot complete this session"


class StatsError(Exception):
    """Base class for caller-facing stats engine errors."""


class BadInputError(StatsError):
    """Malformed or out-of-range arguments. Always fixable by the caller."""


class NotFoundError(StatsError):
    """A referenced user, play record or ledger entry does not exist."""


class SessionUnavailableError(StatsError):
    """The session is missing, belongs to another user, or was already completed.

    The cases share one message so callers cannot probe for other users' sessions.
    """

    def __init__(self) -> None:
        super().__init__(SESSION_UNAVAILABLE_MESSAGE)


__all__ = [
    "SESSION_UNAVAILABLE_MESSAGE",
    "BadInputError",
    "ConflictError",
    "NotFoundError",
    "SessionUnavailableError",
    "StatsError",
    "StoreError",
    "StoreFailureError",
]
