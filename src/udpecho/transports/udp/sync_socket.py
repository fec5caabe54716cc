"""Synchronous UDP endpoint implementation."""

import logging
import socket
from enum import Enum
from typing import Optional, Tuple, Union

from udpecho.config.settings import (
    EndpointConfig,
    LOCAL_UDP_PORT,
    MAX_PORT,
    READ_TIMEOUT,
    WRITE_TIMEOUT,
)
from udpecho.errors import (
    BindError,
    CloseError,
    InvalidArgumentError,
    NotInitializedError,
    ReceiveError,
    TransmitError,
    TruncatedDatagramError,
    UDPTimeoutError,
)

logger = logging.getLogger(__name__)

Address = Tuple[str, int]
Buffer = Union[bytearray, memoryview]

# recvmsg_into reports MSG_TRUNC; platforms without it fall back to recvfrom_into
_HAS_RECVMSG = hasattr(socket.socket, "recvmsg_into")
_MSG_TRUNC = getattr(socket, "MSG_TRUNC", 0)


class EndpointState(Enum):
    """Lifecycle of an endpoint's socket handle."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class UDPEndpoint:
    """
    Bound UDP socket usable as either the sending or the receiving side.

    Every transmit and receive arms a fresh deadline on the socket before
    performing I/O, so no call blocks longer than its timeout. The endpoint
    remembers the last remote address it talked to in ``remote_address``.

    An endpoint is not reusable: once closed, create a new one to bind again.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = LOCAL_UDP_PORT,
        read_timeout: float = READ_TIMEOUT,
        write_timeout: float = WRITE_TIMEOUT,
        strict_truncation: bool = False,
    ):
        """
        Initialize UDP endpoint. Nothing is bound until open() is called.

        Args:
            host: Bind hostname or IP
            port: Bind port (0 for automatic assignment)
            read_timeout: Receive deadline in seconds
            write_timeout: Transmit deadline in seconds
            strict_truncation: Raise TruncatedDatagramError when a datagram
                does not fit the receive buffer instead of truncating it
        """
        self.host = host
        self.port = port
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.strict_truncation = strict_truncation
        self.socket: Optional[socket.socket] = None
        self.remote_address: Optional[Address] = None
        self.last_truncated = False
        self._state = EndpointState.UNOPENED

    @classmethod
    def from_config(cls, config: EndpointConfig) -> "UDPEndpoint":
        """Create an unopened endpoint from an EndpointConfig."""
        return cls(
            host=config.host,
            port=config.port,
            read_timeout=config.read_timeout,
            write_timeout=config.write_timeout,
            strict_truncation=config.strict_truncation,
        )

    @property
    def state(self) -> EndpointState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is EndpointState.OPEN

    def open(self, address: Optional[Address] = None) -> None:
        """
        Bind the socket. Calling open() on an already open endpoint does nothing.

        Args:
            address: Optional (host, port) overriding the constructor values

        Raises:
            BindError: If the socket cannot be created or bound
            NotInitializedError: If the endpoint was already closed
        """
        if self._state is EndpointState.OPEN:
            return
        if self._state is EndpointState.CLOSED:
            raise NotInitializedError(
                "endpoint is closed, create a new endpoint to bind again",
                operation="open",
            )

        if address is not None:
            self.host, self.port = address

        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.bind((self.host, self.port))
        except OSError as e:
            if sock is not None:
                sock.close()
            raise BindError(
                f"failed to bind UDP endpoint on {self.host}:{self.port}",
                operation="open",
                cause=e,
            ) from e

        self.socket = sock
        self._state = EndpointState.OPEN
        # Update port if it was auto-assigned
        if self.port == 0:
            self.port = sock.getsockname()[1]
        logger.debug("UDP endpoint bound on %s:%s", self.host, self.port)

    def close(self) -> None:
        """
        Release the socket. Safe to call on an unopened or closed endpoint.

        Raises:
            CloseError: If the OS reports a failure while closing. The handle
                is cleared regardless.
        """
        if self._state is not EndpointState.OPEN:
            return

        sock, self.socket = self.socket, None
        self._state = EndpointState.CLOSED
        try:
            sock.close()
        except OSError as e:
            raise CloseError(
                "failed to close UDP endpoint", operation="close", cause=e
            ) from e
        logger.debug("UDP endpoint on %s:%s closed", self.host, self.port)

    def local_address(self) -> Optional[Address]:
        """Return the bound local address, or None if the endpoint is not open."""
        if self._state is not EndpointState.OPEN:
            return None
        try:
            return self.socket.getsockname()
        except OSError:
            # Socket closed underneath the endpoint
            return None

    def transmit(self, destination: Optional[Address], payload: bytes) -> int:
        """
        Send one datagram to destination.

        Args:
            destination: Target address tuple (host, port)
            payload: Bytes to send, must not be empty

        Returns:
            Number of bytes sent, always len(payload)

        Raises:
            NotInitializedError: If the endpoint is not open
            InvalidArgumentError: If destination is missing or malformed, or payload is empty
            UDPTimeoutError: If the write deadline elapsed
            TransmitError: On any other socket failure or a short write
        """
        sock = self._require_open("transmit")
        check_destination(destination, "transmit")
        if not payload:
            raise InvalidArgumentError("empty payload", operation="transmit")

        timeout = _check_timeout(self.write_timeout, "transmit")
        try:
            sock.settimeout(timeout)
        except OSError as e:
            raise TransmitError(
                "failed in setting write deadline", operation="transmit", cause=e
            ) from e

        self.remote_address = destination
        try:
            sent = sock.sendto(payload, destination)
        except socket.timeout as e:
            raise UDPTimeoutError(
                "write deadline exceeded", operation="transmit", cause=e
            ) from e
        except OSError as e:
            raise TransmitError(
                "failed to write data", operation="transmit", cause=e
            ) from e
        except (OverflowError, TypeError) as e:
            raise InvalidArgumentError(
                f"invalid destination address {destination!r}",
                operation="transmit",
                cause=e,
            ) from e

        if sent != len(payload):
            raise TransmitError(
                f"short write, sent {sent} of {len(payload)} bytes",
                operation="transmit",
            )
        return sent

    def receive(self, buffer: Buffer) -> Tuple[int, Address]:
        """
        Wait for one datagram and copy it into buffer.

        A datagram larger than the buffer is truncated; ``last_truncated``
        tells whether that happened on the latest call.

        Args:
            buffer: Writable buffer, must not be empty

        Returns:
            Tuple of (bytes written into buffer, sender_address)

        Raises:
            NotInitializedError: If the endpoint is not open
            InvalidArgumentError: If buffer is empty
            UDPTimeoutError: If no datagram arrived before the read deadline
            TruncatedDatagramError: If strict_truncation is set and the
                datagram did not fit
            ReceiveError: On any other socket failure
        """
        sock = self._require_open("receive")
        if buffer is None or len(buffer) == 0:
            raise InvalidArgumentError("empty receive buffer", operation="receive")

        timeout = _check_timeout(self.read_timeout, "receive")
        try:
            sock.settimeout(timeout)
        except OSError as e:
            raise ReceiveError(
                "failed in setting read deadline", operation="receive", cause=e
            ) from e

        try:
            nbytes, sender, truncated = _receive_into(sock, buffer)
        except socket.timeout as e:
            raise UDPTimeoutError(
                "read deadline exceeded", operation="receive", cause=e
            ) from e
        except OSError as e:
            raise ReceiveError(
                "failed to read data", operation="receive", cause=e
            ) from e

        self.remote_address = sender
        self.last_truncated = truncated
        if truncated:
            if self.strict_truncation:
                raise TruncatedDatagramError(
                    f"datagram from {sender} exceeds {len(buffer)} byte buffer",
                    operation="receive",
                )
            logger.warning(
                "Datagram from %s truncated to %d bytes", sender, nbytes
            )
        return nbytes, sender

    def _require_open(self, operation: str) -> socket.socket:
        if self._state is EndpointState.OPEN:
            return self.socket
        raise NotInitializedError(
            f"failed to {operation} due to {self._state.value} endpoint",
            operation=operation,
        )

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def check_destination(destination: Optional[Address], operation: str) -> Address:
    """
    Validate a (host, port) destination before it reaches the socket.

    Raises:
        InvalidArgumentError: If destination is missing or malformed
    """
    if not destination:
        raise InvalidArgumentError("missing destination address", operation=operation)
    try:
        host, port = destination
    except (TypeError, ValueError):
        raise InvalidArgumentError(
            f"destination must be a (host, port) tuple, got {destination!r}",
            operation=operation,
        )
    if not isinstance(host, str) or not isinstance(port, int) or not 0 <= port <= MAX_PORT:
        raise InvalidArgumentError(
            f"invalid destination address {destination!r}", operation=operation
        )
    return destination


def _check_timeout(timeout: Optional[float], operation: str) -> float:
    # settimeout(0) is non-blocking and settimeout(None) blocks forever
    if timeout is None or timeout <= 0:
        raise InvalidArgumentError(
            f"timeout must be a positive number of seconds, got {timeout!r}",
            operation=operation,
        )
    return timeout


def _receive_into(sock: socket.socket, buffer: Buffer) -> Tuple[int, Address, bool]:
    if _HAS_RECVMSG:
        nbytes, _, flags, sender = sock.recvmsg_into([buffer])
        return nbytes, sender, bool(flags & _MSG_TRUNC)
    nbytes, sender = sock.recvfrom_into(buffer)
    return nbytes, sender, False


def new_endpoint(address: Optional[Address] = None, **kwargs) -> UDPEndpoint:
    """
    Create and open an endpoint in one step.

    Args:
        address: Optional (host, port) to bind, defaults to 0.0.0.0:62048
        **kwargs: Passed through to UDPEndpoint

    Raises:
        BindError: If binding fails
    """
    endpoint = UDPEndpoint(**kwargs)
    endpoint.open(address)
    return endpoint


def transmit(
    endpoint: Optional[UDPEndpoint], destination: Optional[Address], payload: bytes
) -> int:
    """Transmit through endpoint, treating a missing endpoint as not initialized."""
    if endpoint is None:
        raise NotInitializedError(
            "failed to transmit due to missing endpoint", operation="transmit"
        )
    return endpoint.transmit(destination, payload)


def receive(endpoint: Optional[UDPEndpoint], buffer: Buffer) -> Tuple[int, Address]:
    """Receive through endpoint, treating a missing endpoint as not initialized."""
    if endpoint is None:
        raise NotInitializedError(
            "failed to receive due to missing endpoint", operation="receive"
        )
    return endpoint.receive(buffer)
