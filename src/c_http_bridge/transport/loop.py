"""
Event loop hosting for transports.

Runs an asyncio event loop in a dedicated daemon thread so that
synchronous callers can hand work to it and block on their own
thread while the loop keeps firing callbacks.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


class EventLoopThread:
    """asyncio event loop running in a background thread."""

    def __init__(self, name: str = "c_http_bridge-loop") -> None:
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the loop thread if it is not running yet."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._started.clear()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_forever, name=self._name, daemon=True
            )
            self._thread.start()
        self._started.wait()
        logger.debug(f"Event loop thread {self._name} started")

    def _run_forever(self) -> None:
        assert self._loop is not None
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._started.set)
        try:
            self._loop.run_forever()
        finally:
            self._shutdown_loop()

    def _shutdown_loop(self) -> None:
        assert self._loop is not None
        pending = asyncio.all_tasks(self._loop)
        for task in pending:
            task.cancel()
        if pending:
            self._loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )
        self._loop.close()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> "concurrent.futures.Future[Any]":
        """
        Schedule a coroutine on the loop from any thread.

        Returns:
            A concurrent future; cancelling it cancels the task.
        """
        self.start()
        assert self._loop is not None
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the loop and wait for its thread to exit."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._thread = None
        if loop is None or thread is None:
            return
        if thread is threading.current_thread():
            raise RuntimeError("Cannot stop the event loop from its own thread")
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        logger.debug(f"Event loop thread {self._name} stopped")

    def is_current(self) -> bool:
        """Check whether the calling thread is the loop thread."""
        return self._thread is not None and threading.current_thread() is self._thread

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
