"""Example: UDP echo server and client on UDPEndpoint."""

import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from udpecho.errors import UDPTimeoutError
from udpecho.server import EchoServer
from udpecho.transports.udp.sync_socket import UDPEndpoint

SERVER_ADDR = ("127.0.0.1", 9001)


def run_server():
    """Run the UDP echo server until Ctrl+C."""
    server = EchoServer(UDPEndpoint(*SERVER_ADDR))
    server.start()
    try:
        while not server.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        print("\nShutting down server...")
        server.stop()
        server.wait()
    finally:
        server.close()


def run_client():
    """Send one message to the echo server and print the reply."""
    with UDPEndpoint("127.0.0.1", 9002, read_timeout=1.0) as ep:
        message = b"Hello, UDP Server!"
        print(f"Sending: {message.decode()}")
        ep.transmit(SERVER_ADDR, message)
        buf = bytearray(2048)
        try:
            n, _ = ep.receive(buf)
        except UDPTimeoutError:
            print("No reply from server")
            return
        print(f"Received: {buf[:n].decode()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    if len(sys.argv) > 1 and sys.argv[1] == "client":
        run_client()
    else:
        run_server()
