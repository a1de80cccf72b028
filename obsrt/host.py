"""Minimal host object model for generated bidirectional bindings.

Node is the native notification mechanism the generated
``<Type>BuiltinObservables`` mixins re-emit into: signals are addressed by
lowercase name and dispatched synchronously to connected callables.
"""

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from reactivex.abc import DisposableBase
from reactivex.disposable import CompositeDisposable

CONNECT_LOCK = threading.RLock()
"""Guards the Unconnected -> Connected transition of generated properties."""


class Node:
    def __init__(self) -> None:
        self._signals: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._disposables = CompositeDisposable()

    def connect(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals[signal].append(callback)

    def disconnect(self, signal: str, callback: Callable[..., Any]) -> None:
        callbacks = self._signals.get(signal)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def emit_signal(self, signal: str, *args: Any) -> None:
        for callback in list(self._signals.get(signal, ())):
            callback(*args)

    def add_disposable(self, disposable: DisposableBase) -> None:
        self._disposables.add(disposable)

    @property
    def is_freed(self) -> bool:
        return self._disposables.is_disposed

    def free(self) -> None:
        """Dispose everything tied to this node's lifetime."""
        self._disposables.dispose()
        self._signals.clear()


def add_to(disposable: DisposableBase, owner: Node) -> DisposableBase:
    """Tie disposable to owner's lifetime and return it."""
    owner.add_disposable(disposable)
    return disposable
