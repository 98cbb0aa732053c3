"""
Post-commit notifications.

Notifications are only scheduled once the action's transaction committed.
They run as background tasks; a failure is logged and never affects the
data that was already written.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fire-and-forget runner for notification coroutines."""

    def __init__(self):
        # Strong references so pending tasks are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, notification: Callable[[], Awaitable[Any]], description: str = "notification") -> asyncio.Task:
        task = asyncio.create_task(self._run(notification, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, notification: Callable[[], Awaitable[Any]], description: str) -> Optional[Any]:
        try:
            result = await notification()
            logger.debug("Sent %s", description)
            return result
        except Exception:
            logger.exception("Failed to send %s", description)
            return None

    async def drain(self) -> None:
        """Wait for pending notifications, e.g. on shutdown or in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)


notification_dispatcher = NotificationDispatcher()
