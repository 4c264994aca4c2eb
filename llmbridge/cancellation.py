"""
llmbridge Cancellation - Cooperative cancellation for requests and streams

A CancellationToken is created by the caller, passed to any client
operation, and cancelled from anywhere (another task or another thread).

- Before a request is issued the token is checked and a pre-cancelled
  token fails immediately without touching the network.
- While a request or stream is in flight the token is raced against the
  pending httpx operation; cancelling it cancels the underlying asyncio task,
  which closes the HTTP connection.

One token may be shared by many concurrent requests; cancelling it aborts
all of them.

Usage:
    token = CancellationToken()
    task = asyncio.create_task(client.chat_completion(messages, cancel_token=token))
    token.cancel("user pressed stop")
"""

import asyncio
import logging
import threading
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, List, Optional, TypeVar

from .errors import CancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CancelCallback = Callable[[Optional[str]], None]


class CancellationToken:
    """
    Thread-safe, one-way cancellation flag with an optional reason.

    cancel() is idempotent: only the first call records the reason and
    fires callbacks, later calls are no-ops.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._reason: Optional[str] = None
        self._callbacks: List[CancelCallback] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> bool:
        """
        Request cancellation.

        Args:
            reason: Optional human readable reason

        Returns:
            True if this call cancelled the token, False if it was already cancelled
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            self._reason = reason
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        logger.debug(f"Cancellation requested: {reason or 'no reason given'}")
        for callback in callbacks:
            try:
                callback(reason)
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def on_cancelled(self, callback: CancelCallback) -> Callable[[], None]:
        """
        Register a callback fired once when the token is cancelled.

        If the token is already cancelled the callback runs immediately.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister

        callback(self._reason)
        return lambda: None

    def raise_if_cancelled(self, provider: Optional[str] = None) -> None:
        """Raise CancelledError if the token has been cancelled"""
        if self._cancelled:
            raise CancelledError(self._reason, provider=provider)

    async def wait(self) -> Optional[str]:
        """Wait until the token is cancelled and return the reason"""
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _resolve() -> None:
            if not future.done():
                future.set_result(self._reason)

        def _wake(_reason: Optional[str]) -> None:
            loop.call_soon_threadsafe(_resolve)

        unregister = self.on_cancelled(_wake)
        try:
            return await future
        finally:
            unregister()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self._reason!r})"


async def run_cancellable(
    awaitable: Awaitable[T],
    token: Optional[CancellationToken],
    provider: Optional[str] = None,
) -> T:
    """
    Await an operation, aborting it when the token is cancelled.

    Raises:
        CancelledError: The token was cancelled before or during the operation
    """
    if token is None:
        return await awaitable

    if token.is_cancelled:
        # Close the coroutine so it is not reported as never awaited
        close = getattr(awaitable, "close", None)
        if close is not None:
            close()
        raise CancelledError(token.reason, provider=provider)

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if not waiter.done():
            waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    logger.debug(f"Aborted in-flight operation for {provider or 'unknown provider'}")
    raise CancelledError(token.reason, provider=provider)


_EXHAUSTED = object()


async def _next_or_exhausted(iterator: AsyncIterator[T]):
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def iterate_cancellable(
    source: AsyncIterable[T],
    token: Optional[CancellationToken],
    provider: Optional[str] = None,
) -> AsyncIterator[T]:
    """
    Iterate an async source, checking the token at every chunk boundary.

    The wait for each chunk is raced against the token so a stalled stream
    is aborted promptly. The source is closed when iteration stops.
    """
    iterator = source.__aiter__()
    try:
        while True:
            item = await run_cancellable(_next_or_exhausted(iterator), token, provider)
            if item is _EXHAUSTED:
                return
            yield item
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
