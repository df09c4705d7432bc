"""Result type for explicit error handling.

Every protocol step returns either ``Ok(value)`` or ``Err(error)``. The error
values are small frozen dataclasses, one per failure kind, so callers can
branch on the kind (for example retryable vs. fatal) instead of parsing a
message string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, Generic, NoReturn, Optional, TypeVar, Union

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Mapped type


class ResultError(Exception):
    """Raised when unwrapping a Result fails."""

    pass


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Represents a successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the success value. Safe to call since this is Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        """Get the error value. Raises since this is Ok."""
        raise ResultError(f"Called unwrap_err on Ok value: {self.value}")

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        """Transform the success value."""
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
        """Chain another Result-returning operation."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True)
class Err(Generic[E]):
    """Represents an error result."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        """Get the success value. Raises since this is Err."""
        raise ResultError(f"Called unwrap on Err value: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_err(self) -> E:
        """Get the error value. Safe to call since this is Err."""
        return self.error

    def map(self, fn: Callable[[T], U]) -> "Err[E]":
        """Transform the success value. No-op for Err."""
        return self

    def and_then(self, fn: Callable[[T], "Result[U, E]"]) -> "Err[E]":
        """Chain another Result-returning operation. No-op for Err."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Type alias for Result
Result = Union[Ok[T], Err[E]]


# Error kinds for the provisioning handshake
@dataclass(frozen=True)
class TransportError:
    """The HTTP call could not complete (refused, timed out, broken response)."""

    retryable: ClassVar[bool] = True

    operation: str
    message: str
    cause: Optional[Exception] = None

    def __str__(self) -> str:
        return f"Transport failure during {self.operation}: {self.message}"


@dataclass(frozen=True)
class ProtocolError:
    """The WireServer answered with a status other than 200."""

    retryable: ClassVar[bool] = True

    operation: str
    status_code: int

    def __str__(self) -> str:
        return f"HTTP status code {self.status_code} during {self.operation}"


@dataclass(frozen=True)
class DecodeError:
    """The goal state body is not valid UTF-8."""

    retryable: ClassVar[bool] = False

    message: str
    cause: Optional[Exception] = None

    def __str__(self) -> str:
        return f"Decode goal state: {self.message}"


@dataclass(frozen=True)
class MalformedDocumentError:
    """The goal state body is not well-formed XML."""

    retryable: ClassVar[bool] = False

    message: str
    cause: Optional[Exception] = None

    def __str__(self) -> str:
        return f"Parse goal state: {self.message}"


@dataclass(frozen=True)
class MissingElementError:
    """A required element is absent from the goal state."""

    retryable: ClassVar[bool] = False

    tag: str
    path: str = ""

    def __str__(self) -> str:
        if self.path:
            return f"Parse goal state: Missing {self.tag} tag under {self.path}"
        return f"Parse goal state: Missing {self.tag} tag"


@dataclass(frozen=True)
class EncodeError:
    """The readiness document could not be written."""

    retryable: ClassVar[bool] = False

    field: str
    message: str

    def __str__(self) -> str:
        return f"Build readiness document: {self.field}: {self.message}"


@dataclass(frozen=True)
class ConfigError:
    """Error in configuration."""

    retryable: ClassVar[bool] = False

    field: str
    message: str

    def __str__(self) -> str:
        return f"Config error in '{self.field}': {self.message}"


ProvisioningError = Union[
    TransportError,
    ProtocolError,
    DecodeError,
    MalformedDocumentError,
    MissingElementError,
    EncodeError,
]


def is_retryable(error: object) -> bool:
    """Only transport and protocol failures can change between attempts."""
    return bool(getattr(error, "retryable", False))


# Exit codes
class ExitCode:
    """Exit codes for CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    UNEXPECTED_ERROR = 2

    CONFIG_ERROR = 10

    # Remote errors (20-29)
    TRANSPORT_FAILED = 20
    PROTOCOL_FAILED = 21

    # Goal state errors (30-39)
    DECODE_FAILED = 30
    MALFORMED_DOCUMENT = 31
    MISSING_ELEMENT = 32

    # Readiness document errors (40-49)
    ENCODE_FAILED = 40


_EXIT_CODES: dict[type, int] = {
    ConfigError: ExitCode.CONFIG_ERROR,
    TransportError: ExitCode.TRANSPORT_FAILED,
    ProtocolError: ExitCode.PROTOCOL_FAILED,
    DecodeError: ExitCode.DECODE_FAILED,
    MalformedDocumentError: ExitCode.MALFORMED_DOCUMENT,
    MissingElementError: ExitCode.MISSING_ELEMENT,
    EncodeError: ExitCode.ENCODE_FAILED,
}


def exit_code_for(error: object) -> int:
    """Map an error value to the process exit code."""
    return _EXIT_CODES.get(type(error), ExitCode.GENERAL_ERROR)
