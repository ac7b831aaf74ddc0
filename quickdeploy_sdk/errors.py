"""
Error taxonomy root.

Every error raised by Quick Deploy carries a ``kind`` (a str Enum member) and
answers ``retryable``. The orchestrator retries retryable errors within a step's
budget and fails the step immediately on anything else.
"""
from enum import Enum
from typing import ClassVar, Optional


class QuickDeployError(Exception):
    """Base class for all Quick Deploy errors."""

    retryable_kinds: ClassVar[frozenset] = frozenset()

    def __init__(self, kind: Enum, message: str, *, retry_after: Optional[float] = None):
        self.kind = kind
        self.message = message
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in self.retryable_kinds

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value!r}, {self.message!r})"


class NetworkError(QuickDeployError):
    """Transport-level failure talking to any upstream API."""

    class Kind(str, Enum):
        TIMEOUT = "timeout"
        RATE_LIMITED = "rate_limited"
        UPSTREAM_UNAVAILABLE = "upstream_unavailable"

    retryable_kinds = frozenset(Kind)


class ApiError(QuickDeployError):
    """
    Non-success HTTP reply that is not a network-class failure.

    Components translate these into their own taxonomy based on ``status``.
    """

    class Kind(str, Enum):
        UNEXPECTED_STATUS = "unexpected_status"

    def __init__(self, status: int, message: str, *, body: Optional[object] = None):
        self.status = status
        self.body = body
        super().__init__(ApiError.Kind.UNEXPECTED_STATUS, message)
