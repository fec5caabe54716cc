"""Command line entry point for the UDP echo server."""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from udpecho.config.settings import (
    EndpointConfig,
    LOCAL_UDP_PORT,
    MAX_DATAGRAM_SIZE,
    MAX_PORT,
    MIN_PORT,
)
from udpecho.errors import BindError
from udpecho.server import EchoServer

logger = logging.getLogger(__name__)

DESCRIPTION = f"""\
UDP Echo Server Application

  This program runs a UDP Server on a specified port.
  It echos back the received messages.
  It has maximum buffer size of {MAX_DATAGRAM_SIZE} bytes.

  To terminate the program press 'Ctrl + c' or send SIGINT.
"""


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port {value!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise argparse.ArgumentTypeError(
            f"port must be in range {MIN_PORT} to {MAX_PORT}, got {port}"
        )
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udp-echo-server",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-p",
        "--port",
        type=_port,
        default=LOCAL_UDP_PORT,
        help=f"UDP Local Port range from {MIN_PORT} to {MAX_PORT} (default: %(default)s)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the echo server until SIGINT.

    Returns:
        0 after a clean shutdown, 1 if binding failed or the loop hit an error
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server = EchoServer.from_config(EndpointConfig(port=args.port))

    def on_interrupt(signum, frame):
        print(file=sys.stderr)
        server.stop()

    # Installed before binding so an early Ctrl+C still reaches close()
    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        try:
            server.start()
        except BindError as e:
            logger.error("Failed to open endpoint - %s", e)
            return 1

        # Short waits keep the main thread responsive to signals
        while not server.wait(timeout=0.5):
            pass
    finally:
        signal.signal(signal.SIGINT, previous)
        server.close()

    return 1 if server.error is not None else 0
