"""
Task Coordinator
Manages lifecycle of the long-lived tasks of one emission session
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from iron_heart.errors import SetupError
from iron_heart.heart_rate.status import HeartRateStatus

from .clock import SessionClock
from .shutdown import ShutdownToken
from .updates import ErrorPopup, StatusChannel, StatusUpdate, UpdateBroadcaster

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[None]]


class TaskCoordinator:
    """
    Coordinates the sources and the OSC emitter of a session

    Responsibilities:
    - Own the shutdown token, the UI broadcaster and the status channel
    - Start and stop registered tasks
    - Publish statuses to the UI and to the emitter with one timestamp
    - Contain faults: a crashing task is reported, the others keep running
    """

    def __init__(
        self,
        clock: Optional[SessionClock] = None,
        broadcaster: Optional[UpdateBroadcaster] = None,
        shutdown: Optional[ShutdownToken] = None,
    ):
        self.clock = clock if clock else SessionClock()
        self.broadcaster = broadcaster if broadcaster else UpdateBroadcaster()
        self.shutdown = shutdown if shutdown else ShutdownToken()
        self.status_channel = StatusChannel()

        self._factories: Dict[str, TaskFactory] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._failed: List[str] = []

        logger.info("Task coordinator initialized")

    # -----------------------------------------------------------------------
    # Status publishing
    # -----------------------------------------------------------------------

    def publish_status(self, status: HeartRateStatus):
        """
        Hand a status to the UI and the emitter.

        Args:
            status: Snapshot produced by the StatusAggregator.
        """
        self.broadcaster.publish(StatusUpdate(status=status, timestamp=self.clock.now()))
        self.status_channel.send(status)

    def notify(self, popup: ErrorPopup):
        self.broadcaster.notify(popup)

    # -----------------------------------------------------------------------
    # Task lifecycle
    # -----------------------------------------------------------------------

    def register_task(self, task_name: str, factory: TaskFactory):
        """
        Register a task to be started by start_task()/start_all_tasks().

        Args:
            task_name: Unique identifier, e.g. 'websocket' or 'osc'.
            factory: Zero-argument coroutine function running the task.
        """
        if task_name in self._factories:
            logger.warning(f"Task '{task_name}' already registered, replacing")
        self._factories[task_name] = factory
        logger.info(f"✓ Registered task: {task_name}")

    def start_task(self, task_name: str) -> asyncio.Task:
        if task_name not in self._factories:
            logger.error(f"Task '{task_name}' not registered")
            raise ValueError(f"Unknown task: {task_name}")

        task = asyncio.create_task(self._supervise(task_name), name=f"iron-heart-{task_name}")
        self._tasks[task_name] = task
        logger.info(f"✓ Started task: {task_name}")
        return task

    def start_all_tasks(self):
        logger.info(f"Starting {len(self._factories)} tasks...")
        for task_name in self._factories:
            if task_name not in self._tasks:
                self.start_task(task_name)

    async def wait(self):
        """Wait until every started task has finished."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def stop_all_tasks(self, timeout: float = 5.0):
        """
        Cancel the shutdown token and wait for tasks to clean up.

        Tasks still running after the timeout are cancelled outright.
        """
        logger.info(f"Stopping {len(self._tasks)} tasks...")
        self.shutdown.cancel()

        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=timeout)
            for task in still_running:
                logger.warning(f"⚠ Task {task.get_name()} ignored shutdown, cancelling")
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)

        logger.info("✓ All tasks stopped")

    async def _supervise(self, task_name: str):
        try:
            await self._factories[task_name]()
            logger.info(f"Task '{task_name}' finished")
        except asyncio.CancelledError:
            logger.info(f"Task '{task_name}' cancelled")
            raise
        except SetupError as e:
            self._failed.append(task_name)
            self.notify(ErrorPopup.detailed(f"Failed to start {task_name}.", e))
        except Exception as e:
            self._failed.append(task_name)
            logger.error(f"✗ Task '{task_name}' crashed: {e}", exc_info=True)
            self.broadcaster.publish(ErrorPopup.detailed(f"{task_name} stopped unexpectedly.", e))

    # -----------------------------------------------------------------------
    # Status
    # -----------------------------------------------------------------------

    def get_task_status(self, task_name: str) -> Optional[dict]:
        if task_name not in self._factories:
            return None
        task = self._tasks.get(task_name)
        return {
            'task_name': task_name,
            'started': task is not None,
            'running': task is not None and not task.done(),
            'failed': task_name in self._failed,
        }

    def get_coordinator_status(self) -> dict:
        return {
            'registered_tasks': list(self._factories.keys()),
            'failed_tasks': list(self._failed),
            'shutdown': self.shutdown.is_cancelled,
            'queued_statuses': self.status_channel.qsize(),
            'clock_stats': self.clock.get_stats(),
            'tasks': {name: self.get_task_status(name) for name in self._factories},
        }

    def __repr__(self):
        return f"<TaskCoordinator(tasks={len(self._factories)}, running={sum(not t.done() for t in self._tasks.values())})>"
