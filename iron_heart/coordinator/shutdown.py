"""
Shutdown Token
Cooperative cancellation signal shared by every long-lived task
"""

import asyncio
import logging
from typing import Any, Awaitable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ShutdownToken:
    """
    Cooperative cancellation signal.

    Every suspension point of a task is raced against the token through
    race() or sleep(). When both finish together the token wins, so shutdown
    completes even under continuous traffic.

    Child tokens are cancelled with their parent but can also be cancelled
    on their own, which lets a task stop its own loops without stopping
    the rest of the process.
    """

    def __init__(self, name: str = 'root'):
        self.name = name
        self._event = asyncio.Event()
        self._children: List['ShutdownToken'] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        """Cancel this token and all of its children."""
        if not self._event.is_set():
            logger.debug(f"Shutdown token '{self.name}' cancelled")
            self._event.set()
        for child in self._children:
            child.cancel()

    def child_token(self, name: Optional[str] = None) -> 'ShutdownToken':
        child = ShutdownToken(name or f"{self.name}.child")
        self._children.append(child)
        if self.is_cancelled:
            child.cancel()
        return child

    async def cancelled(self):
        """Wait until the token is cancelled."""
        await self._event.wait()

    async def race(self, awaitable: Awaitable[Any]) -> Tuple[bool, Any]:
        """
        Await something unless the token is cancelled first.

        Args:
            awaitable: Coroutine or future to wait for.

        Returns:
            (True, None) if the token was cancelled first, otherwise
            (False, result). Exceptions from the awaitable propagate.
        """
        work = asyncio.ensure_future(awaitable)
        if self.is_cancelled:
            await _discard(work)
            return True, None

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            waiter.cancel()
            raise

        if waiter.done():
            await _discard(work)
            return True, None

        waiter.cancel()
        return False, work.result()

    async def sleep(self, delay: float) -> bool:
        """
        Sleep for delay seconds unless cancelled.

        Returns:
            True if the token was cancelled during (or before) the sleep.
        """
        if self.is_cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(delay, 0.0))
        except asyncio.TimeoutError:
            return self.is_cancelled
        return True

    def __repr__(self):
        state = "cancelled" if self.is_cancelled else "active"
        return f"<ShutdownToken(name={self.name}, {state})>"


async def _discard(task: asyncio.Future):
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.debug(f"Discarded task finished with {type(e).__name__}: {e}")
