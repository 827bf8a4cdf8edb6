import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Set

from .exceptions import MintingStopped

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Single stop flag for one minting run.

    Every suspension point of the pipeline goes through the token, so a
    cancel() both flips the flag and aborts whatever request is in flight.
    """

    def __init__(self):
        self._cancelled = False
        self._inflight: Set[asyncio.Future] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        if self._inflight:
            logger.info(f"Aborting {len(self._inflight)} in-flight request(s)")
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    def raise_if_cancelled(self, what: str = "Processing"):
        if self._cancelled:
            raise MintingStopped(f"{what} stopped by user")

    async def run(self, aw: Awaitable[Any], what: str = "Processing") -> Any:
        """Awaits aw as a tracked task; raises MintingStopped if cancel() aborts it."""
        if self._cancelled:
            if inspect.iscoroutine(aw):
                aw.close()
            raise MintingStopped(f"{what} stopped by user")

        task = asyncio.ensure_future(aw)
        self._inflight.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            # Only an abort issued through this token becomes MintingStopped.
            # Cancellation of the caller itself must keep propagating.
            if self._cancelled and task.cancelled():
                current = asyncio.current_task()
                if current is None or not current.cancelling():
                    raise MintingStopped(f"{what} stopped by user") from None
            raise
        finally:
            self._inflight.discard(task)

    async def sleep(self, seconds: float, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                    what: str = "Waiting"):
        await self.run(sleep(seconds), what)
