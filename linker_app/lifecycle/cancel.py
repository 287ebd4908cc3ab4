import asyncio
import threading
from typing import Callable, List


class CancelToken:
    """
    Cancellation signal shared by the server thread and every lookup.

    ``cancel()`` may be called from any thread (signal handler, server
    thread, ``close()``); only the first call has an effect. Callbacks
    registered with ``add_callback`` run exactly once, on the thread that
    cancels, or immediately if the token is already cancelled.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.RLock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def wait(self, timeout: float = None) -> bool:
        """Block until cancelled or until ``timeout`` seconds pass."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    async def wait_async(self) -> None:
        """Await cancellation from inside an event loop."""
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        def wake():
            try:
                loop.call_soon_threadsafe(_resolve, waiter)
            except RuntimeError:
                # loop already closed, nobody is waiting anymore
                return

        self.add_callback(wake)
        try:
            await waiter
        finally:
            self.remove_callback(wake)


def _resolve(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)
