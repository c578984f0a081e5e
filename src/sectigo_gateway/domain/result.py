"""
Result type — the failure track shared by every adapter and service.

A Result[T] is either Success(value: T) or Failure(error: FailureDescription).
Adapters convert exceptions at their boundary so remote-API errors, transport
errors and malformed responses travel as values:

    await client.get_certificate(139)      → Success(RemoteCertificate(...))
    await client.get_certificate(404)      → Failure(REMOTE_API_ERROR: "-110 | ...")

Success(None) is rejected on purpose: "nothing there" is modeled as
Failure(NOT_FOUND) so callers always branch on the state, never on the payload.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


@unique
class ErrorCode(Enum):
    """Structured error codes carried by a Failure."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Missing organization, department, profile or mandatory field."""

    NOT_FOUND = "NOT_FOUND"
    """The remote resource is not (yet) available."""

    REMOTE_API_ERROR = "REMOTE_API_ERROR"
    """The authority answered with a structured error (code + description)."""

    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    """Network or connectivity failure reaching the authority."""

    INVALID_RESPONSE = "INVALID_RESPONSE"
    """A success response whose body could not be read."""

    DATABASE_ERROR = "DATABASE_ERROR"
    """Local record store failure."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected, unclassified failure."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """Immutable failure descriptor: code, message, optional cause, timestamp."""

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class Result(Generic[T]):
    """
    Two-track result.

        >>> Result.success(2).map(lambda x: x * 21).value()
        42
        >>> Result.failure(ErrorCode.NOT_FOUND, "gone").map(lambda x: x).is_failure()
        True
    """

    __slots__ = ()

    # ──────────────────────── Introspection ────────────────────────

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_failure(self) -> bool:
        return isinstance(self, Failure)

    def value(self) -> T:
        """Extract the success value. Raises ValueError on a Failure."""
        if isinstance(self, Success):
            return self._value
        raise ValueError(f"Cannot get value from a Failure: {self.error().message}")

    def error(self) -> FailureDescription:
        """Extract the failure description. Raises ValueError on a Success."""
        if isinstance(self, Failure):
            return self._error
        raise ValueError(f"Cannot get error from a Success: {self.value()!r}")

    # ──────────────────────── Transformations ────────────────────────

    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[FailureDescription], R],
    ) -> R:
        if isinstance(self, Success):
            return on_success(self._value)
        return on_failure(self.error())

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        if isinstance(self, Success):
            return Success(mapper(self._value))
        return Failure(self.error())

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        if isinstance(self, Success):
            return mapper(self._value)
        return Failure(self.error())

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        """Run a side effect (usually logging) on the failure track."""
        if isinstance(self, Failure):
            action(self._error)
        return self

    def get_or_else(self, default: T) -> T:
        if isinstance(self, Success):
            return self._value
        return default

    # ──────────────────────── Factories ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: BaseException | None = None,
    ) -> Result[Any]:
        return Failure(FailureDescription(code=code, message=message, exception=exception))

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Run a computation that may raise and capture the outcome.

            Result.from_computation(
                lambda: response.json(),
                ErrorCode.INVALID_RESPONSE,
                "Certificate detail could not be decoded",
            )
        """
        try:
            return Result.success(computation())
        except Exception as e:
            return Result.failure(error_code, f"{error_message}: {e}", e)

    @staticmethod
    def from_optional(
        value: T | None,
        error_message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ) -> Result[T]:
        if value is not None:
            return Result.success(value)
        return Result.failure(error_code, error_message)

    def __bool__(self) -> bool:
        return self.is_success()


class Success(Result[T]):
    """The success track."""

    __slots__ = ("_value",)
    __match_args__ = ("_value",)

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        self._value = value

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Success):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Success", self._value))


class Failure(Result[T]):
    """The failure track."""

    __slots__ = ("_error",)
    __match_args__ = ("_error",)

    def __init__(self, error: FailureDescription) -> None:
        if error is None:
            raise TypeError("Failure error must not be None")
        self._error = error

    def __repr__(self) -> str:
        return f"Failure({self._error.code.value}: {self._error.message!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Failure):
            return (
                self._error.code == other._error.code
                and self._error.message == other._error.message
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Failure", self._error.code, self._error.message))
