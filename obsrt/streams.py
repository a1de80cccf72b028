"""Event-to-observable glue on top of reactivex.

from_event and from_event_with turn an add/remove accessor pair into a
cold observable: every subscription attaches its own native handler and
detaches it again when the subscription is disposed or the optional
cancellation token fires. Cancellation also completes the stream.
"""

from collections.abc import Callable
from typing import Any, TypeVar

import reactivex
from reactivex.abc import DisposableBase, ObserverBase, SchedulerBase
from reactivex.disposable import CompositeDisposable, Disposable
from reactivex.subject import Subject

from obsrt.cancellation import CancellationToken

_T = TypeVar("_T")

__all__ = ["Subject", "Unit", "from_event", "from_event_with"]


class Unit:
    """Payload of notifications that carry no value."""

    default: "Unit"

    def __repr__(self) -> str:
        return "Unit"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Unit)

    def __hash__(self) -> int:
        return 0


Unit.default = Unit()


def from_event(
    add_handler: Callable[[Callable[[], None]], Any],
    remove_handler: Callable[[Callable[[], None]], Any],
    cancellation_token: CancellationToken | None = None,
) -> reactivex.Observable[Unit]:
    """Wrap a parameterless notification. Each raise pushes Unit.default."""

    def conversion(emit: Callable[[Unit], None]) -> Callable[[], None]:
        def handler() -> None:
            emit(Unit.default)

        return handler

    return from_event_with(conversion, add_handler, remove_handler, cancellation_token)


def from_event_with(
    conversion: Callable[[Callable[[_T], None]], Any],
    add_handler: Callable[[Any], Any],
    remove_handler: Callable[[Any], Any],
    cancellation_token: CancellationToken | None = None,
) -> reactivex.Observable[_T]:
    """Wrap a notification whose native handler is built by conversion.

    conversion receives the observer's on_next and returns the object
    passed to add_handler / remove_handler.
    """

    def subscribe(
        observer: ObserverBase[_T], scheduler: SchedulerBase | None = None
    ) -> DisposableBase:
        if cancellation_token is not None and cancellation_token.is_cancellation_requested:
            observer.on_completed()
            return Disposable()

        handler = conversion(observer.on_next)
        add_handler(handler)
        detach = Disposable(lambda: remove_handler(handler))
        subscription = CompositeDisposable(detach)

        if cancellation_token is not None:

            def on_cancel() -> None:
                detach.dispose()
                observer.on_completed()

            subscription.add(cancellation_token.register(on_cancel))

        return subscription

    return reactivex.create(subscribe)
