# sales_hub/services/poller.py
"""
Pending Confirmation Poller - one recurring asyncio task per pending order.

The task runs ``check`` immediately, then every ``interval`` seconds, until
``stop()`` is called. Each run carries its own token; ``stop()`` drops the
token and cancels the task, so no tick of an old run can fire after it.
``stop()`` may be called from inside ``check`` itself (the order resolved):
the loop then ends after the current tick instead of cancelling itself.
``aclose()`` also cancels such a run if it is still finishing that tick.

Errors raised by ``check`` are logged and swallowed; the next tick retries.
"""
from __future__ import annotations
import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class PendingConfirmationPoller:

    def __init__(self, check: Callable[[], Awaitable[Any]], interval: float = 5.0):
        self._check = check
        self.interval = interval
        self._token: Optional[object] = None
        self._task: Optional[asyncio.Task] = None
        # runs that stopped themselves mid-tick and are still finishing that tick
        self._finishing: Set[asyncio.Task] = set()
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._token is not None and self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling; any previous run is torn down first. Needs a running loop."""
        self.stop()
        token = object()
        self._token = token
        self._task = asyncio.get_running_loop().create_task(self._run(token), name="pending-order-poller")
        logger.info(f"Pending poller started (every {self.interval}s)")

    def stop(self) -> None:
        if self._token is None and self._task is None:
            return
        self._token = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            if task is _current_task():
                self._finishing.add(task)
                task.add_done_callback(self._finishing.discard)
            else:
                task.cancel()
        logger.info("Pending poller stopped")

    async def aclose(self) -> None:
        """stop(), cancel any run still finishing its last tick, and wait for all of them."""
        tasks = [t for t in (self._task, *self._finishing) if t is not None]
        self.stop()
        current = _current_task()
        for task in tasks:
            if task is current:
                continue
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._finishing.clear()

    async def _run(self, token: object) -> None:
        while self._token is token:
            self.ticks += 1
            try:
                await self._check()
            except Exception as e:
                logger.warning(f"Pending order status check failed: {e}", exc_info=True)
            if self._token is not token:
                break
            await asyncio.sleep(self.interval)
