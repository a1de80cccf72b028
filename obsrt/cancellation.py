"""Cooperative cancellation primitive for generated observable wrappers."""

import threading
from collections.abc import Callable

from reactivex.abc import DisposableBase
from reactivex.disposable import Disposable


class CancellationToken:
    """Read-only view of a cancellation request.

    Callbacks registered before cancellation run once, in registration
    order, on the thread that calls CancellationTokenSource.cancel().
    Callbacks registered after cancellation run immediately.
    """

    NONE: "CancellationToken"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def register(self, callback: Callable[[], None]) -> DisposableBase:
        with self._lock:
            if not self._cancelled:
                registration_id = self._next_id
                self._next_id += 1
                self._callbacks[registration_id] = callback
                return Disposable(lambda: self._unregister(registration_id))
        callback()
        return Disposable()

    def _unregister(self, registration_id: int) -> None:
        with self._lock:
            self._callbacks.pop(registration_id, None)

    def _cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = [self._callbacks[key] for key in sorted(self._callbacks)]
            self._callbacks.clear()
        for callback in callbacks:
            callback()


CancellationToken.NONE = CancellationToken()


class CancellationTokenSource:
    def __init__(self) -> None:
        self._token = CancellationToken()

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancellation_requested(self) -> bool:
        return self._token.is_cancellation_requested

    def cancel(self) -> None:
        self._token._cancel()
