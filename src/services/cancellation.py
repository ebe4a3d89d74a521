import asyncio
from typing import Optional


class CancellationToken:
    """Cooperative cancellation shared by reference across nested awaits.

    ``cancel()`` flags the token and cancels the task bound to it, so a
    transport call that is currently awaiting is interrupted by native
    task cancellation rather than running to completion.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def bind(self, task: asyncio.Task) -> asyncio.Task:
        self._task = task
        if self.cancelled:
            task.cancel()
        return task

    def cancel(self) -> None:
        if self.cancelled:
            return
        self._event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise asyncio.CancelledError()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early with CancelledError on cancel."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise asyncio.CancelledError()


async def run_with_token(coro, token: CancellationToken):
    """Run ``coro`` as a task bound to ``token`` and await it."""
    task = token.bind(asyncio.ensure_future(coro))
    return await task
