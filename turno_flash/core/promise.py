"""
Helpers that keep awaited network calls from hanging forever and make their
failures easy to handle at the call site.

`with_timeout` races an operation against a timer. It stops *waiting* when the
timer fires but never cancels the operation itself, so anything wrapped with
it must be safe to finish after the caller has moved on (idempotent writes or
side-effect-free reads).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_TIMEOUT_MESSAGE = "La operación tardó demasiado tiempo"

# Abandoned operations keep running after a timeout; hold a strong reference
# until they settle so the event loop does not drop them.
_abandoned: set[asyncio.Future[Any]] = set()


class OperationTimeoutError(TimeoutError):
    """Raised when an awaited operation does not settle within its deadline."""

    def __init__(self, message: str = DEFAULT_TIMEOUT_MESSAGE, *, timeout_ms: float | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.timeout_ms = timeout_ms


def _settle_abandoned(future: asyncio.Future[Any]) -> None:
    _abandoned.discard(future)
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.debug("Operation failed after its timeout elapsed: %r", exc)


async def with_timeout(
    operation: Awaitable[T],
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    message: str = DEFAULT_TIMEOUT_MESSAGE,
) -> T:
    """
    Await `operation`, giving up after `timeout_ms` milliseconds.

    On timeout raises `OperationTimeoutError(message)`. The underlying
    operation is left running and its eventual result or error is discarded.
    """

    future = asyncio.ensure_future(operation)
    done, _ = await asyncio.wait({future}, timeout=timeout_ms / 1000)
    if future in done:
        return future.result()

    _abandoned.add(future)
    future.add_done_callback(_settle_abandoned)
    raise OperationTimeoutError(message, timeout_ms=timeout_ms)


async def safe_async(operation: Awaitable[T]) -> tuple[Exception | None, T | None]:
    """
    Await `operation` and return `(error, result)` where one side is always None.

        error, data = await safe_async(client.list_services(org_id))
        if error:
            ...
    """

    try:
        result = await operation
    except Exception as exc:  # noqa: BLE001
        return exc, None
    return None, result


async def safe_async_with_timeout(
    operation: Awaitable[T],
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    message: str | None = None,
) -> tuple[Exception | None, T | None]:
    return await safe_async(
        with_timeout(operation, timeout_ms, message or DEFAULT_TIMEOUT_MESSAGE)
    )


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    retries: int = 3,
    delay_ms: float = 1000,
    should_retry: Callable[[Exception], bool] | None = None,
) -> T:
    """
    Call `fn` until it succeeds, at most `retries + 1` times.

    Waits a fixed `delay_ms` between attempts. When `should_retry` returns
    False for an error, that error is raised without further attempts.
    After the last attempt the last error is re-raised.
    """

    if retries < 0:
        raise ValueError("retries must be >= 0")

    last_error: Exception | None = None
    for attempt in range(retries + 1):
        try:
            return await fn()
        except Exception as exc:
            last_error = exc
            if attempt >= retries:
                break
            if should_retry is not None and not should_retry(exc):
                raise
            logger.debug(
                "Attempt %s/%s failed (%r), retrying in %sms",
                attempt + 1,
                retries + 1,
                exc,
                delay_ms,
            )
            await asyncio.sleep(delay_ms / 1000)

    assert last_error is not None
    raise last_error


class Deferred(Generic[T]):
    """
    Future that is settled from outside, typically from a callback-style API.

    `resolve` and `reject` may be called from another thread; settling an
    already settled deferred does nothing.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self.future: asyncio.Future[T] = self._loop.create_future()

    def __await__(self):
        return self.future.__await__()

    @property
    def done(self) -> bool:
        return self.future.done()

    def resolve(self, value: T) -> None:
        self._call(self._set_result, value)

    def reject(self, error: BaseException) -> None:
        self._call(self._set_exception, error)

    def _call(self, setter: Callable[[Any], None], arg: Any) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            setter(arg)
        else:
            self._loop.call_soon_threadsafe(setter, arg)

    def _set_result(self, value: T) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def _set_exception(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


def create_deferred(loop: asyncio.AbstractEventLoop | None = None) -> Deferred[Any]:
    return Deferred(loop)
