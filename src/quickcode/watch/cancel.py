"""Cooperative cancellation for the watcher's threads.

A :class:`CancellationToken` wraps a :class:`threading.Event`. Every blocking
point in the watcher (the push channel's run loop, the polling interval, and
the idle-verification delay) waits on a token, so cancelling it wakes the
waiter immediately instead of at the end of a sleep.

Tokens can be linked: a child created with :meth:`CancellationToken.child`
is cancelled whenever its parent is, but can also be cancelled on its own.
"""

from __future__ import annotations

import contextlib
import signal
import threading
from typing import Any, Callable, Iterator, Optional


class CancellationToken:
    """A one-shot, thread-safe cancellation signal.

    Callbacks registered with :meth:`register` run exactly once, on the
    thread that calls :meth:`cancel`. Registering on an already-cancelled
    token runs the callback immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        """Whether :meth:`cancel` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks. Idempotent."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or *timeout* seconds elapse.

        Returns:
            ``True`` if the token was cancelled.
        """
        return self._event.wait(timeout)

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on cancellation.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def child(self) -> CancellationToken:
        """Create a token that is cancelled together with this one."""
        token = CancellationToken()
        unregister = self.register(token.cancel)
        token.register(unregister)
        return token


@contextlib.contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[CancellationToken]:
    """Cancel *token* on Ctrl-C while the block runs.

    Installs a temporary SIGINT handler so the interrupt cancels the watch
    cleanly instead of raising :class:`KeyboardInterrupt` in the middle of a
    render. Signal handlers can only be set from the main thread; elsewhere
    the block runs unchanged.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum: int, frame: Any) -> None:
        # The interrupted main thread may hold locks that cancel() needs
        threading.Thread(target=token.cancel, name="interrupt", daemon=True).start()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
