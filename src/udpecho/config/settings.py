"""Endpoint configuration settings."""

from dataclasses import dataclass

# Default local receiving port for the echo server and clients
LOCAL_UDP_PORT = 62048

# Deadlines in seconds, armed before every receive and transmit
READ_TIMEOUT = 0.05
WRITE_TIMEOUT = 0.05

MAX_DATAGRAM_SIZE = 2048

MIN_PORT = 1024
MAX_PORT = 65535


@dataclass
class EndpointConfig:
    """Endpoint configuration."""

    host: str = "0.0.0.0"
    port: int = LOCAL_UDP_PORT
    read_timeout: float = READ_TIMEOUT
    write_timeout: float = WRITE_TIMEOUT
    buffer_size: int = MAX_DATAGRAM_SIZE

    # Raise instead of silently accepting datagrams larger than the buffer
    strict_truncation: bool = False
