"""Bidirectional UDP endpoint and echo server."""

from udpecho.errors import (
    BindError,
    CloseError,
    InvalidArgumentError,
    NotInitializedError,
    ReceiveError,
    TransmitError,
    TruncatedDatagramError,
    UDPError,
    UDPTimeoutError,
)
from udpecho.server import EchoServer, LoopState, async_echo_loop, echo_loop
from udpecho.sync import WaitGroup
from udpecho.transports.udp.async_socket import AsyncUDPEndpoint
from udpecho.transports.udp.sync_socket import EndpointState, UDPEndpoint, new_endpoint

__version__ = "0.1.0"
__all__ = [
    "UDPEndpoint",
    "AsyncUDPEndpoint",
    "EndpointState",
    "new_endpoint",
    "EchoServer",
    "LoopState",
    "echo_loop",
    "async_echo_loop",
    "WaitGroup",
    "UDPError",
    "BindError",
    "CloseError",
    "NotInitializedError",
    "InvalidArgumentError",
    "UDPTimeoutError",
    "TransmitError",
    "ReceiveError",
    "TruncatedDatagramError",
    "__version__",
]
