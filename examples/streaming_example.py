"""
Streaming response bodies with c_http_bridge.

The transport reads at most one chunk ahead of the consumer, so a
slow consumer slows the download instead of filling memory.
"""

import logging
import time

from c_http_bridge import BridgedHTTPHandler, Request
from c_http_bridge.transport import AsyncIOTransport

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def sink_example(handler):
    """Deliver chunks to a callback as they are pulled."""
    print("=== Callback Sink Example ===")
    received = []

    def progress(chunk, response):
        received.append(len(chunk))
        print(f"  chunk {len(received)}: {len(chunk)} bytes (status {response.code})")

    request = Request.create("GET", "http://httpbin.org/stream-bytes/65536?chunk_size=8192")
    response = handler.request(request, sink=progress, size=8192)
    print(f"Total: {sum(received)} bytes in {len(received)} chunks\n")
    return response


def file_example(handler, path="download.bin"):
    """Write the body straight to a file."""
    print("=== File Sink Example ===")
    request = Request.create("GET", "http://httpbin.org/bytes/4096")
    response = handler.request(request, sink=path)
    print(f"Saved {response.status_line} body to {path}\n")


def slow_consumer_example(handler):
    """Pull chunks manually and stop early."""
    print("=== Slow Consumer Example ===")
    request = Request.create("GET", "http://httpbin.org/drip?numbytes=10&duration=2")
    response, stream = handler.perform(request, size=1)

    with stream:
        print(f"Headers ready: {response.status_line}")
        for i, chunk in enumerate(stream):
            print(f"  read {chunk!r}")
            time.sleep(0.1)
            if i == 4:
                print("  closing early")
                break

    print(f"Read {stream.bytes_read} bytes before closing\n")


def main():
    transport = AsyncIOTransport()
    handler = BridgedHTTPHandler(transport)
    try:
        sink_example(handler)
        file_example(handler)
        slow_consumer_example(handler)
    finally:
        handler.close()


if __name__ == "__main__":
    main()
