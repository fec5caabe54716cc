"""Error types raised by UDP endpoints."""

from typing import Optional


class UDPError(Exception):
    """
    Base class for all endpoint errors.

    Args:
        message: Human readable description
        operation: Name of the failing operation (open, close, transmit, receive)
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.cause = cause
        if cause is not None:
            message = f"{message} - {cause}"
        super().__init__(message)


class BindError(UDPError):
    """Socket could not be acquired or bound."""


class NotInitializedError(UDPError):
    """Operation attempted on an endpoint without an open socket."""


class InvalidArgumentError(UDPError, ValueError):
    """Missing destination, empty payload or empty buffer."""


class UDPTimeoutError(UDPError, TimeoutError):
    """Deadline elapsed before any I/O completed."""


class TransmitError(UDPError):
    """Send failed for a reason other than a timeout."""


class ReceiveError(UDPError):
    """Receive failed for a reason other than a timeout."""


class TruncatedDatagramError(ReceiveError):
    """Datagram did not fit the buffer and strict truncation is enabled."""


class CloseError(UDPError):
    """Releasing the socket failed."""
