"""Fixed-interval background polling with deterministic teardown."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RepeatingTask:
    """Run ``callback`` now and then every ``interval`` seconds until cancelled.

    A failing tick is logged and skipped; the next tick simply tries again.
    """

    def __init__(
        self, interval: float, callback: Callable[[], Awaitable[None]], name: str = "poll"
    ) -> None:
        self.interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)

    async def _loop(self) -> None:
        while True:
            try:
                await self._callback()
            except Exception as e:
                logger.debug(f"{self._name} tick failed: {e}")
            await asyncio.sleep(self.interval)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait for the loop to unwind."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
