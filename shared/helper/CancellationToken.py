"""Cooperative cancellation for long-running RAG requests."""

import asyncio
from typing import Awaitable, Iterable, TypeVar

from shared.exceptions import OperationCancelledError

T = TypeVar("T")


class CancellationToken:
    """Signals that the caller abandoned a request.

    The token is passed down to every network call of a mention query. Once
    cancel() has been called, awaits wrapped by run() abort with
    OperationCancelledError and the wrapped operation is cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Request cancelled by caller.") -> None:
        """Mark the token as cancelled. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token was cancelled."""
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Request cancelled.")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await the given awaitable unless the token gets cancelled first.

        Args:
            awaitable (Awaitable[T]): The operation to run.

        Returns:
            T: The result of the awaitable.

        Raises:
            OperationCancelledError: If the token is or becomes cancelled before the operation completes.
        """
        operation = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            operation.cancel()
            self.raise_if_cancelled()
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not operation.done():
                operation.cancel()
        if operation in done:
            return operation.result()
        raise OperationCancelledError(self.reason or "Request cancelled.")


async def gather_or_cancel(awaitables: Iterable[Awaitable[T]]) -> list[T]:
    """Run awaitables concurrently and return their results in order.

    Unlike a bare asyncio.gather, the first failure cancels the siblings that
    are still running and waits for them to settle before re-raising, so no
    request outlives the operation that started it.

    Raises:
        Exception: The first exception raised by any of the awaitables.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except Exception:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
