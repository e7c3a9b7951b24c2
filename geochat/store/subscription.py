"""
Live subscription handle.

A subscription is a long-lived listener backed by one asyncio task. Deliveries for one
subscription are serialized; ``close()`` is idempotent.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Coroutine, List, Optional, Union

from geochat.core.logging import get_logger, log_subscription_event

logger = get_logger(__name__)

ErrorCallback = Callable[[BaseException], Union[None, Awaitable[None]]]


async def maybe_await(result: Any) -> Any:
    """Await coroutine results so callbacks may be plain functions or coroutines."""
    if inspect.isawaitable(result):
        return await result
    return result


class Subscription:
    """Cancellable handle for a snapshot listener."""

    def __init__(
        self,
        name: str,
        on_snapshot: Callable[[Any], Any],
        on_error: Optional[ErrorCallback] = None,
    ):
        self.name = name
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._lock = asyncio.Lock()
        self._tasks: List[asyncio.Task] = []
        self._closed = False
        self._failed = False
        self.error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> bool:
        return not self._closed and not self._failed

    async def deliver(self, payload: Any):
        """Invoke the snapshot callback; callback errors propagate to the caller."""
        if not self.active:
            return
        async with self._lock:
            if not self.active:
                return
            await maybe_await(self._on_snapshot(payload))

    async def dispatch(self, payload: Any):
        """Deliver from the change feed; callback errors are logged and the feed continues."""
        try:
            await self.deliver(payload)
        except Exception as e:
            logger.error(f"Snapshot callback failed for {self.name}: {e}", exc_info=True)

    def start(self, feed: Coroutine) -> asyncio.Task:
        """Run the change feed in the background."""
        return self.attach(self._run(feed))

    def attach(self, coro: Coroutine) -> asyncio.Task:
        """Run a helper task whose lifetime is bound to this subscription."""
        task = asyncio.create_task(coro)
        self._tasks.append(task)
        return task

    async def _run(self, feed: Coroutine):
        try:
            await feed
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self.fail(e)

    async def fail(self, error: BaseException):
        """Report a feed failure once, then stop delivering. No retry."""
        if self._failed or self._closed:
            return
        self._failed = True
        self.error = error
        log_subscription_event(logger, "failed", self.name, error=str(error))
        logger.error(f"Subscription {self.name} stopped: {error}")
        if self._on_error is not None:
            try:
                await maybe_await(self._on_error(error))
            except Exception as callback_error:
                logger.error(f"Error callback failed for {self.name}: {callback_error}")

    async def close(self):
        """Cancel the subscription. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Error while closing subscription {self.name}: {e}")
        self._tasks.clear()
        log_subscription_event(logger, "closed", self.name)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
