"""
UI Updates
Messages published to the display collaborator, and the fan-out that delivers them
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from iron_heart.heart_rate.status import HeartRateStatus

logger = logging.getLogger(__name__)


class Severity(Enum):
    """How a notification is cleared from the display."""
    INTERMITTENT = "intermittent"  # auto-clearing
    USER_MUST_DISMISS = "user_must_dismiss"


@dataclass(frozen=True)
class ErrorPopup:
    """User-facing notification."""
    message: str
    severity: Severity = Severity.INTERMITTENT

    @classmethod
    def intermittent(cls, message: str) -> 'ErrorPopup':
        return cls(message, Severity.INTERMITTENT)

    @classmethod
    def user_must_dismiss(cls, message: str) -> 'ErrorPopup':
        return cls(message, Severity.USER_MUST_DISMISS)

    @classmethod
    def detailed(cls, message: str, error: BaseException) -> 'ErrorPopup':
        """Dismissable popup carrying the underlying error text."""
        return cls(f"{message}\n{type(error).__name__}: {error}", Severity.USER_MUST_DISMISS)


@dataclass(frozen=True)
class StatusUpdate:
    """A new heart rate status, stamped with the session clock."""
    status: HeartRateStatus
    timestamp: datetime


@dataclass(frozen=True)
class ListeningAddress:
    """Address a listener is bound to, shared so the UI can display it."""
    host: str
    port: int

    def __str__(self):
        return f"ws://{self.host}:{self.port}"


AppUpdate = Union[StatusUpdate, ErrorPopup, ListeningAddress]


class UpdateBroadcaster:
    """
    Fans AppUpdates out to every subscriber.

    Each subscriber owns a bounded queue. A subscriber that falls behind
    loses its oldest updates rather than stalling the publishers.
    """

    def __init__(self, max_backlog: int = 256):
        self.max_backlog = max_backlog
        self._subscribers: List[asyncio.Queue] = []
        self.published_count = 0

    def subscribe(self) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.max_backlog)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, update: AppUpdate):
        """Deliver an update to every subscriber without blocking."""
        self.published_count += 1
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                logger.debug("UI subscriber lagging, dropped oldest update")
            queue.put_nowait(update)

    def notify(self, popup: ErrorPopup):
        if popup.severity is Severity.USER_MUST_DISMISS:
            logger.error(popup.message)
        else:
            logger.warning(popup.message)
        self.publish(popup)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def __repr__(self):
        return f"<UpdateBroadcaster(subscribers={len(self._subscribers)})>"


class StatusChannel:
    """
    Single-consumer FIFO of statuses for the OSC emitter.

    close() plays the part of every sender going away: the consumer drains
    what is queued and then receives None.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def send(self, status: HeartRateStatus):
        if self._closed:
            logger.debug("Status dropped, channel closed")
            return
        self._queue.put_nowait(status)

    def close(self):
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def recv(self) -> Optional[HeartRateStatus]:
        """Next status, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is self._CLOSED:
            # Leave the marker for any later recv() call
            self._queue.put_nowait(self._CLOSED)
            return None
        return item

    def qsize(self) -> int:
        return self._queue.qsize()
