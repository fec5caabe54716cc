"""Asynchronous UDP endpoint implementation."""

import asyncio
import logging
from typing import Optional, Tuple, Union

from udpecho.config.settings import (
    EndpointConfig,
    LOCAL_UDP_PORT,
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
from udpecho.transports.udp.sync_socket import (
    Address,
    Buffer,
    EndpointState,
    check_destination,
)

logger = logging.getLogger(__name__)


class AsyncUDPProtocol(asyncio.DatagramProtocol):
    """Protocol handler for async UDP."""

    def __init__(self):
        """Initialize protocol."""
        self.transport: Optional[asyncio.DatagramTransport] = None
        # Holds (data, addr) tuples or exceptions to surface on the next receive
        self.received_data: asyncio.Queue = asyncio.Queue()
        # Set while the endpoint is inside transport.sendto
        self.sending = False
        self.send_error: Optional[Exception] = None

    def connection_made(self, transport):
        """Called when connection is established."""
        self.transport = transport

    def datagram_received(self, data: bytes, addr: Address):
        """Called when a datagram is received."""
        self.received_data.put_nowait((data, addr))

    def error_received(self, exc: Exception):
        """Called when an error occurs."""
        logger.warning("UDP error: %s", exc)
        if self.sending:
            self.send_error = exc
            return
        self.received_data.put_nowait(exc)

    def connection_lost(self, exc: Optional[Exception]):
        """Called when the transport is closed."""
        self.received_data.put_nowait(exc or ConnectionError("transport closed"))


class AsyncUDPEndpoint:
    """Asynchronous counterpart of UDPEndpoint built on asyncio datagram transports."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = LOCAL_UDP_PORT,
        read_timeout: float = READ_TIMEOUT,
        write_timeout: float = WRITE_TIMEOUT,
        strict_truncation: bool = False,
    ):
        """
        Initialize async UDP endpoint.

        Args:
            host: Bind hostname or IP
            port: Bind port (0 for automatic assignment)
            read_timeout: Receive deadline in seconds
            write_timeout: Transmit deadline in seconds
            strict_truncation: Raise TruncatedDatagramError on oversized datagrams
        """
        self.host = host
        self.port = port
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.strict_truncation = strict_truncation
        self.transport: Optional[asyncio.DatagramTransport] = None
        self.protocol: Optional[AsyncUDPProtocol] = None
        self.remote_address: Optional[Address] = None
        self.last_truncated = False
        self._state = EndpointState.UNOPENED

    @classmethod
    def from_config(cls, config: EndpointConfig) -> "AsyncUDPEndpoint":
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

    async def open(self, address: Optional[Address] = None) -> None:
        """
        Bind the datagram endpoint. Does nothing if already open.

        Raises:
            BindError: If binding fails
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

        loop = asyncio.get_running_loop()
        try:
            self.transport, self.protocol = await loop.create_datagram_endpoint(
                AsyncUDPProtocol, local_addr=(self.host, self.port)
            )
        except OSError as e:
            raise BindError(
                f"failed to bind UDP endpoint on {self.host}:{self.port}",
                operation="open",
                cause=e,
            ) from e

        self._state = EndpointState.OPEN
        if self.port == 0:
            self.port = self.transport.get_extra_info("sockname")[1]

    async def close(self) -> None:
        """Close the transport. Safe to call on an unopened or closed endpoint."""
        if self._state is not EndpointState.OPEN:
            return

        transport = self.transport
        self.transport = None
        self.protocol = None
        self._state = EndpointState.CLOSED
        try:
            transport.close()
        except OSError as e:
            raise CloseError(
                "failed to close UDP endpoint", operation="close", cause=e
            ) from e

    def local_address(self) -> Optional[Address]:
        """Return the bound local address, or None if the endpoint is not open."""
        if self._state is not EndpointState.OPEN:
            return None
        return self.transport.get_extra_info("sockname")

    async def transmit(self, destination: Optional[Address], payload: bytes) -> int:
        """
        Send one datagram to destination.

        The datagram transport sends without blocking, so the write deadline
        is only validated here. An OS error raised by the send itself is
        raised as TransmitError. Failures the OS reports later, after the
        transport buffered the datagram, surface on the next receive.

        Raises:
            NotInitializedError: If the endpoint is not open
            InvalidArgumentError: If destination is missing or malformed, or payload is empty
            TransmitError: If the transport is closing or rejects the datagram
        """
        self._require_open("transmit")
        check_destination(destination, "transmit")
        if not payload:
            raise InvalidArgumentError("empty payload", operation="transmit")
        if self.write_timeout is None or self.write_timeout <= 0:
            raise InvalidArgumentError(
                f"timeout must be a positive number of seconds, got {self.write_timeout!r}",
                operation="transmit",
            )
        if self.transport.is_closing():
            raise TransmitError("transport is closing", operation="transmit")

        self.remote_address = destination
        protocol = self.protocol
        protocol.send_error = None
        protocol.sending = True
        try:
            self.transport.sendto(payload, destination)
        except (OSError, ValueError) as e:
            raise TransmitError(
                "failed to write data", operation="transmit", cause=e
            ) from e
        finally:
            protocol.sending = False

        # The selector transport hands send errors to error_received instead of raising
        error, protocol.send_error = protocol.send_error, None
        if error is not None:
            raise TransmitError(
                "failed to write data", operation="transmit", cause=error
            ) from error
        return len(payload)

    async def receive(self, buffer: Buffer) -> Tuple[int, Address]:
        """
        Wait up to read_timeout for one datagram and copy it into buffer.

        Returns:
            Tuple of (bytes written into buffer, sender_address)

        Raises:
            NotInitializedError: If the endpoint is not open
            InvalidArgumentError: If buffer is empty
            UDPTimeoutError: If no datagram arrived in time
            ReceiveError: If the transport reported an error
        """
        self._require_open("receive")
        if buffer is None or len(buffer) == 0:
            raise InvalidArgumentError("empty receive buffer", operation="receive")
        if self.read_timeout is None or self.read_timeout <= 0:
            raise InvalidArgumentError(
                f"timeout must be a positive number of seconds, got {self.read_timeout!r}",
                operation="receive",
            )

        try:
            item = await asyncio.wait_for(
                self.protocol.received_data.get(), self.read_timeout
            )
        except asyncio.TimeoutError as e:
            raise UDPTimeoutError(
                "read deadline exceeded", operation="receive", cause=e
            ) from e

        if isinstance(item, Exception):
            raise ReceiveError("failed to read data", operation="receive", cause=item)

        data, sender = item
        nbytes = min(len(data), len(buffer))
        buffer[:nbytes] = data[:nbytes]
        self.remote_address = sender
        self.last_truncated = len(data) > len(buffer)
        if self.last_truncated:
            if self.strict_truncation:
                raise TruncatedDatagramError(
                    f"datagram from {sender} exceeds {len(buffer)} byte buffer",
                    operation="receive",
                )
            logger.warning("Datagram from %s truncated to %d bytes", sender, nbytes)
        return nbytes, sender

    def _require_open(self, operation: str) -> None:
        if self._state is not EndpointState.OPEN:
            raise NotInitializedError(
                f"failed to {operation} due to {self._state.value} endpoint",
                operation=operation,
            )

    async def __aenter__(self):
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
