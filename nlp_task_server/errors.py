"""Error taxonomy shared by tasks, transports and clients.

- ConfigError                  : unsupported or malformed model directory, fatal at load time
- InputTooLong                 : tokenized input exceeds the model's maximum sequence length
- InvalidRequestError          : request or options failed validation
- UnsupportedTaskError         : the server instance does not serve the requested capability
- VocabularyInvariantViolation : an id or token required to exist is missing
- TransportError               : dial failure, deadline exceeded, cancellation
"""

from __future__ import annotations

from dataclasses import dataclass

import grpc


class TaskServerError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(TaskServerError):
    """Unsupported or malformed model/tokenizer configuration."""


class InputTooLong(TaskServerError):
    """Tokenized input is longer than the model accepts."""

    def __init__(self, length: int, limit: int, message: str | None = None) -> None:
        super().__init__(message or f"input sequence too long: {length} > {limit}")
        self.length = length
        self.limit = limit


class InvalidRequestError(TaskServerError):
    """Request or options failed validation."""


class UnsupportedTaskError(TaskServerError):
    """Capability not served by this server instance."""


class VocabularyInvariantViolation(TaskServerError):
    """Vocabulary and tokenizer disagree; not a normal error path."""


class TransportError(TaskServerError):
    """Dial failure, deadline exceeded or other transport-level failure."""

    def __init__(self, message: str, code: grpc.StatusCode | None = None) -> None:
        super().__init__(message)
        self.code = code


class RequestCancelled(TransportError):
    """The caller went away or its deadline expired while the request ran."""

    def __init__(self, message: str = "request cancelled by the caller") -> None:
        super().__init__(message, code=grpc.StatusCode.CANCELLED)


@dataclass(frozen=True)
class Status:
    """Transport-level status for an error kind."""

    grpc_code: grpc.StatusCode
    http_status: int


# Most specific classes first: lookups walk the table in order.
_STATUS_TABLE: tuple[tuple[type[TaskServerError], Status], ...] = (
    (InputTooLong, Status(grpc.StatusCode.OUT_OF_RANGE, 400)),
    (InvalidRequestError, Status(grpc.StatusCode.INVALID_ARGUMENT, 400)),
    (UnsupportedTaskError, Status(grpc.StatusCode.UNIMPLEMENTED, 501)),
    (ConfigError, Status(grpc.StatusCode.FAILED_PRECONDITION, 500)),
    (VocabularyInvariantViolation, Status(grpc.StatusCode.INTERNAL, 500)),
    (RequestCancelled, Status(grpc.StatusCode.CANCELLED, 499)),
    (TransportError, Status(grpc.StatusCode.UNAVAILABLE, 503)),
)

_INTERNAL = Status(grpc.StatusCode.INTERNAL, 500)


def status_for(error: BaseException) -> Status:
    """Return the transport status used to report ``error``."""
    for error_type, status in _STATUS_TABLE:
        if isinstance(error, error_type):
            return status
    return _INTERNAL


def error_from_grpc(code: grpc.StatusCode, details: str | None) -> TaskServerError:
    """Rebuild a local error from a remote gRPC status."""
    message = details or code.name
    if code == grpc.StatusCode.OUT_OF_RANGE:
        return InputTooLong(0, 0, message=message)
    if code == grpc.StatusCode.INVALID_ARGUMENT:
        return InvalidRequestError(message)
    if code == grpc.StatusCode.UNIMPLEMENTED:
        return UnsupportedTaskError(message)
    return TransportError(message, code=code)


def error_body(error: BaseException) -> dict:
    """JSON error body for the HTTP gateway, carrying the gRPC code."""
    return {"code": status_for(error).grpc_code.value[0], "message": str(error)}


def error_from_http(status_code: int, body: dict | None) -> TaskServerError:
    """Rebuild a local error from an HTTP gateway error response."""
    body = body or {}
    message = str(body.get("message") or body.get("detail") or f"HTTP {status_code}")
    code_number = body.get("code")
    for code in grpc.StatusCode:
        if code.value[0] == code_number:
            return error_from_grpc(code, message)
    return TransportError(f"HTTP {status_code}: {message}")
