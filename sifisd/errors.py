"""
SIFIS-Home Error Taxonomy

Transport-level errors terminate only the affected session:
- TransportUnavailable : the socket cannot be opened
- ConnectionClosed     : the peer went away
- ProtocolError        : framing or schema corruption

Request-level errors are reported back to the caller and never affect
other sessions or devices:
- UnknownDevice, UnknownOperation, InvalidArguments, InvalidState
"""

from enum import Enum
from typing import Dict, Type


class ErrorKind(Enum):
    """Error classifications carried in failure responses."""
    TRANSPORT_UNAVAILABLE = "transport_unavailable"
    CONNECTION_CLOSED = "connection_closed"
    PROTOCOL_ERROR = "protocol_error"
    UNKNOWN_DEVICE = "unknown_device"
    UNKNOWN_OPERATION = "unknown_operation"
    INVALID_ARGUMENTS = "invalid_arguments"
    INVALID_STATE = "invalid_state"
    INTERNAL = "internal"


class SifisError(Exception):
    """Base error with a kind and a human-readable detail."""

    kind = ErrorKind.INTERNAL

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.detail}" if self.detail else self.kind.value


class TransportUnavailable(SifisError):
    kind = ErrorKind.TRANSPORT_UNAVAILABLE


class ConnectionClosed(SifisError):
    kind = ErrorKind.CONNECTION_CLOSED


class ProtocolError(SifisError):
    kind = ErrorKind.PROTOCOL_ERROR


class RequestError(SifisError):
    """Errors about a single request. Never fatal to the session."""


class UnknownDevice(RequestError):
    kind = ErrorKind.UNKNOWN_DEVICE


class UnknownOperation(RequestError):
    kind = ErrorKind.UNKNOWN_OPERATION


class InvalidArguments(RequestError):
    kind = ErrorKind.INVALID_ARGUMENTS


class InvalidState(RequestError):
    kind = ErrorKind.INVALID_STATE


class InternalError(RequestError):
    """Unexpected runtime fault, reported to the caller instead of crashing."""
    kind = ErrorKind.INTERNAL


_ERRORS_BY_KIND: Dict[ErrorKind, Type[SifisError]] = {
    cls.kind: cls
    for cls in (
        TransportUnavailable,
        ConnectionClosed,
        ProtocolError,
        UnknownDevice,
        UnknownOperation,
        InvalidArguments,
        InvalidState,
        InternalError,
    )
}


def error_for(kind: ErrorKind, detail: str = "") -> SifisError:
    """Build the typed exception matching an error kind."""
    return _ERRORS_BY_KIND[kind](detail)
