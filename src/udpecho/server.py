"""Echo server built on a UDP endpoint."""

import asyncio
import logging
import threading
from enum import Enum
from typing import Optional

from udpecho.config.settings import EndpointConfig, MAX_DATAGRAM_SIZE, READ_TIMEOUT
from udpecho.errors import UDPError, UDPTimeoutError
from udpecho.sync import WaitGroup
from udpecho.transports.udp.async_socket import AsyncUDPEndpoint
from udpecho.transports.udp.sync_socket import Address, UDPEndpoint

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Receive loop status."""

    RUNNING = "running"
    STOPPED = "stopped"


def _peer(address: Optional[Address]) -> str:
    if not address:
        return "<unknown>"
    return f"{address[0]}:{address[1]}"


def echo_loop(
    endpoint: UDPEndpoint,
    cancel: threading.Event,
    buffer_size: int = MAX_DATAGRAM_SIZE,
    log: Optional[logging.Logger] = None,
) -> Optional[UDPError]:
    """
    Receive datagrams and send each one back to its sender until cancelled.

    Cancellation is checked before every receive, so the loop notices it
    within one read timeout. Timeouts are the idle steady state and are
    skipped; any other error ends the loop.

    Args:
        endpoint: Open endpoint to serve on
        cancel: Event that stops the loop once set
        buffer_size: Maximum datagram size
        log: Logger to report traffic on, defaults to this module's logger

    Returns:
        The error that stopped the loop, or None if it was cancelled
    """
    log = log or logger
    buf = bytearray(buffer_size)

    while not cancel.is_set():
        try:
            nbytes, sender = endpoint.receive(buf)
        except UDPTimeoutError:
            continue
        except UDPError as e:
            log.error("Got error in receive - %s", e)
            return e

        payload = bytes(buf[:nbytes])
        log.info("%s - Received %d bytes - %r", _peer(sender), nbytes, payload)
        if not payload:
            # Nothing to echo for an empty datagram
            continue

        try:
            nbytes = endpoint.transmit(sender, payload)
        except UDPError as e:
            log.error("Got error in transmit - %s", e)
            return e
        log.info("%s - Transmitted %d bytes", _peer(sender), nbytes)

    return None


async def async_echo_loop(
    endpoint: AsyncUDPEndpoint,
    cancel: asyncio.Event,
    buffer_size: int = MAX_DATAGRAM_SIZE,
    log: Optional[logging.Logger] = None,
) -> Optional[UDPError]:
    """Asyncio version of echo_loop with the same exit conditions."""
    log = log or logger
    buf = bytearray(buffer_size)

    while not cancel.is_set():
        try:
            nbytes, sender = await endpoint.receive(buf)
        except UDPTimeoutError:
            continue
        except UDPError as e:
            log.error("Got error in receive - %s", e)
            return e

        payload = bytes(buf[:nbytes])
        log.info("%s - Received %d bytes - %r", _peer(sender), nbytes, payload)
        if not payload:
            continue

        try:
            nbytes = await endpoint.transmit(sender, payload)
        except UDPError as e:
            log.error("Got error in transmit - %s", e)
            return e
        log.info("%s - Transmitted %d bytes", _peer(sender), nbytes)

    return None


class EchoServer:
    """
    Reference echo server.

    Runs two threads registered on a WaitGroup: the receive loop and a
    watcher that waits for the interrupt event (or for the loop to end on
    its own) and then sets the loop's cancel event exactly once.
    """

    def __init__(
        self,
        endpoint: UDPEndpoint,
        wait_group: Optional[WaitGroup] = None,
        interrupt: Optional[threading.Event] = None,
        buffer_size: int = MAX_DATAGRAM_SIZE,
    ):
        """
        Initialize the server.

        Args:
            endpoint: Endpoint to serve on, opened by start() if needed
            wait_group: Completion barrier to register threads on.
                        If None, the server gets its own.
            interrupt: Event that requests shutdown when set.
                       If None, a new one is created; stop() sets it.
            buffer_size: Maximum datagram size
        """
        self.endpoint = endpoint
        self.buffer_size = buffer_size
        self.wait_group = wait_group if wait_group is not None else WaitGroup()
        self.interrupt = interrupt if interrupt is not None else threading.Event()
        self._cancel = threading.Event()
        self._finished = threading.Event()
        self._status = LoopState.STOPPED
        self._started = False
        self._error: Optional[UDPError] = None

    @classmethod
    def from_config(cls, config: EndpointConfig, **kwargs) -> "EchoServer":
        return cls(
            UDPEndpoint.from_config(config), buffer_size=config.buffer_size, **kwargs
        )

    @property
    def status(self) -> LoopState:
        return self._status

    @property
    def error(self) -> Optional[UDPError]:
        """Error that stopped the loop, if any."""
        return self._error

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def start(self) -> None:
        """
        Open the endpoint and start the loop and watcher threads.

        Raises:
            BindError: If the endpoint cannot be opened
            RuntimeError: If the server was already started
        """
        if self._started:
            raise RuntimeError("server already started")

        self.endpoint.open()
        self._started = True
        self._status = LoopState.RUNNING
        logger.info("Server started on %s", _peer(self.endpoint.local_address()))

        self.wait_group.go(self._run_loop, name="udpecho-loop")
        self.wait_group.go(self._watch_interrupt, name="udpecho-interrupt")

    def _run_loop(self) -> None:
        try:
            self._error = echo_loop(self.endpoint, self._cancel, self.buffer_size)
        finally:
            self._status = LoopState.STOPPED
            self._finished.set()
            logger.info("Server stopped")

    def _watch_interrupt(self) -> None:
        while not self._finished.is_set():
            if self.interrupt.wait(READ_TIMEOUT):
                logger.info("Interrupt received, shutting down")
                break
        self._cancel.set()

    def stop(self) -> None:
        """Request shutdown. The loop exits within one read timeout."""
        self.interrupt.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every thread on the wait group has finished.

        Returns:
            True if everything finished, False on timeout
        """
        return self.wait_group.wait(timeout)

    def serve_forever(self) -> None:
        """Start the server and block until it stops."""
        self.start()
        self.wait()

    def close(self) -> None:
        """Release the endpoint."""
        self.endpoint.close()
        logger.info("UDP server closed")
