"""Example: asyncio UDP echo server with graceful cancellation."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from udpecho.server import async_echo_loop
from udpecho.transports.udp.async_socket import AsyncUDPEndpoint


async def main():
    cancel = asyncio.Event()
    asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel.set)

    async with AsyncUDPEndpoint("127.0.0.1", 9001) as ep:
        print(f"UDP server listening on {ep.local_address()}")
        error = await async_echo_loop(ep, cancel)
    return 1 if error else 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    sys.exit(asyncio.run(main()))
