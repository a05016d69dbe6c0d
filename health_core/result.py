"""
Explicit result type for expected, non-exceptional failures.

Used where bad data comes from outside the core (e.g. a malformed month
string read back from storage) and the caller must decide what to do with it.
Programmer errors (unknown metric keys, unknown enum values) still raise.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


@dataclass(frozen=True)
class Result(Generic[ValueT, ErrorT]):
    """Either a parsed value or the error explaining why parsing failed."""

    value: ValueT | None = None
    error: ErrorT | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("Result needs exactly one of value or error")

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> ValueT:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def unwrap_err(self) -> ErrorT:
        if self.error is None:
            raise ValueError("Called unwrap_err() on an ok Result")
        return self.error
