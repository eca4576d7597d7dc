"""
Operation Outcomes

Expected business rejections (a slot already taken, an unapproved venue,
a cancellation outside the window) are returned as values instead of
raised, so callers can branch on a stable error kind. Exceptions stay
reserved for failures nobody planned for.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar('T')


class ErrorKind(str, Enum):
    """Error taxonomy shared by every write path"""
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    FORBIDDEN = 'forbidden'
    INVALID_REQUEST = 'invalid_request'
    TIMEOUT = 'timeout'
    INTERNAL = 'internal'

    @property
    def retryable(self) -> bool:
        """Only transient failures are worth retrying with the same input"""
        return self is ErrorKind.TIMEOUT


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    def __str__(self):
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of an application operation

    Exactly one of ``value`` and ``failure`` is meaningful: ``is_ok`` tells
    which one.
    """
    value: T | None = None
    failure: Failure | None = None

    @classmethod
    def ok(cls, value: T) -> 'Outcome[T]':
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> 'Outcome[T]':
        return cls(failure=Failure(kind, message))

    @property
    def is_ok(self) -> bool:
        return self.failure is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.failure.kind if self.failure else None
