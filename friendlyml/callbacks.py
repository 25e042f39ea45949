# friendlyml/callbacks.py
"""
Callback / awaitable bridge.

Every public async operation can be consumed either way:

    result = await model.predict(image)            # awaitable style
    model.predict(image, lambda err, res: ...)     # callback style

Both adapters sit on one settlement (``settle`` → ``Outcome``), so the
producer runs exactly once. With a callback, it fires after the producer
settles and before the returned task completes; the task then carries the
same value, or raises the very same error object.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar, Union, cast

__all__ = ["Callback", "Outcome", "Producer", "call_callback", "maybe_call", "settle"]

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

T = TypeVar("T")

Callback = Callable[[Optional[BaseException], Optional[T]], Any]
Producer = Union[Awaitable[T], Callable[[], Awaitable[T]]]


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Terminal state of one operation: a value or an error, never both."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def _as_awaitable(producer: Producer[T]) -> Awaitable[T]:
    if inspect.isawaitable(producer):
        return producer
    if callable(producer):
        result = producer()
        if not inspect.isawaitable(result):
            raise TypeError(f"producer returned {type(result).__name__}, expected an awaitable")
        return result
    raise TypeError(f"producer must be awaitable or a callable returning one, got {type(producer).__name__}")


async def settle(producer: Producer[T]) -> Outcome[T]:
    """Await *producer* once and capture its result. Cancellation is not captured."""
    try:
        value = await _as_awaitable(producer)
    except Exception as exc:
        return Outcome(error=exc)
    return Outcome(value=value)


def maybe_call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is not None:
        callback(*args)


def call_callback(producer: Producer[T], callback: Optional[Callback[T]] = None) -> "asyncio.Task[T]":
    """
    Schedule *producer* and return its task, delivering to *callback* first.

    Must be called with a running event loop. An exception raised by the
    callback itself fails the returned task; it is never fed back into the
    callback.
    """
    delivered: List[BaseException] = []

    async def _deliver() -> T:
        outcome = await settle(producer)
        if callback is not None:
            if outcome.ok:
                callback(None, outcome.value)
            else:
                delivered.append(cast(BaseException, outcome.error))
                callback(outcome.error, None)
        return outcome.unwrap()

    def _consume_exception(task: "asyncio.Task[Any]") -> None:
        # Errors that already reached the callback are observed; anything else
        # (a callback that raised) still goes to the loop's exception handler.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not any(exc is d for d in delivered):
            task.get_loop().call_exception_handler(
                {"message": "friendlyml callback raised", "exception": exc, "task": task}
            )

    task = asyncio.get_running_loop().create_task(_deliver())
    if callback is not None:
        task.add_done_callback(_consume_exception)
    return task
