"""Result types separating soft telemetry outcomes from hard state transitions.

``SoftResult`` is returned by best-effort operations (step writes, usage logs,
notifications): it never raises and may carry no value. ``Result`` is returned
by execution state transitions and carries an ``ExecutionError`` on failure.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from scout_agent.errors import ExecutionError

T = TypeVar("T")


@dataclass(frozen=True)
class SoftResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "SoftResult[T]":
        return cls(value=value)

    @classmethod
    def skipped(cls, reason: str) -> "SoftResult[T]":
        return cls(error=reason)


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[ExecutionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ExecutionError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value
