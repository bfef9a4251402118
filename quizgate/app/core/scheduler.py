"""Periodic background tasks decoupled from request handling."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run an async callback on a fixed interval until stopped.

    Usage:
        task = PeriodicTask("ledger-sweep", ledger.sweep, interval=1800)
        await task.start()
        ...
        await task.stop()

    Errors raised by the callback are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        interval: float,
    ) -> None:
        self.name = name
        self._callback = callback
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"Started periodic task '{self.name}' (interval={self._interval}s)")

    async def stop(self, timeout: float = 5.0) -> None:
        if self._task is None:
            return
        self._shutdown_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info(f"Stopped periodic task '{self.name}'")

    async def _loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._interval,
                )
            except asyncio.TimeoutError:
                pass
            if self._shutdown_event.is_set():
                break
            try:
                await self._callback()
            except Exception as e:
                logger.error(f"Error during periodic task '{self.name}': {e}")
