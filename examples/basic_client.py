"""
Basic c_http_bridge client example.

This example demonstrates synchronous requests served by an
asyncio transport running in a background thread, with several
caller threads sharing one client.
"""

import logging
import threading

from c_http_bridge import create_client

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def simple_get_request(client):
    """Demonstrate a simple GET request."""
    logger.info("Making simple GET request...")

    response = client.get("http://httpbin.org/get")
    logger.info(f"Response status: {response.status_line}")
    logger.info(f"Content-Type: {response.headers.get('content-type')}")
    logger.info(f"Response body length: {len(response.content)} bytes")


def post_request_with_body(client):
    """Demonstrate a POST request with body."""
    logger.info("Making POST request with body...")

    response = client.post(
        "http://httpbin.org/post",
        content=b'{"message": "Hello, World!"}',
        headers={"Content-Type": "application/json"},
    )
    logger.info(f"Response status: {response.status_line}")


def redirect_demo(client):
    """Demonstrate redirect following."""
    logger.info("Following redirects...")

    response = client.get("http://httpbin.org/redirect/2")
    for hop in response.redirects():
        logger.info(f"  {hop.status_line} -> {hop.headers.get('location')}")
    logger.info(f"Final status: {response.status_line}")


def unreachable_demo(client):
    """Failures come back as responses with a synthetic status."""
    response = client.get("http://127.0.0.1:1/")
    logger.info(f"Unreachable host: {response.status_line}")


def concurrent_requests(client, count=5):
    """Demonstrate several blocking callers sharing one transport."""
    logger.info(f"Making {count} concurrent requests...")
    results = {}

    def worker(i):
        response = client.get(f"http://httpbin.org/delay/1?n={i}")
        results[i] = response.code

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    logger.info(f"Statuses: {[results[i] for i in sorted(results)]}")


def main():
    """Run all examples."""
    logger.info("Starting c_http_bridge client examples...")

    with create_client(timeout=30) as client:
        try:
            simple_get_request(client)
            post_request_with_body(client)
            redirect_demo(client)
            unreachable_demo(client)
            concurrent_requests(client)
        except Exception as e:
            logger.error(f"Example failed: {e}")
            raise

    logger.info("All examples completed successfully!")


if __name__ == "__main__":
    main()
