import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Runs side effects such as mail sends as detached tasks.

    Callers never await the work they dispatch; failures end up in the log.
    ``flush`` waits for everything still pending, which is what tests and the
    shutdown hook use.
    """

    running: bool
    tasks: set[asyncio.Task[Any]]

    def __init__(self):
        self.running = True
        self.tasks = set()

    @property
    def pending(self) -> int:
        return len(self.tasks)

    def dispatch(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any] | None:
        if not self.running:
            logger.warning(f"Dispatcher stopped, dropping notification {name or ''}")
            coro.close()
            return None

        task = asyncio.create_task(coro, name=name)
        self.tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self.tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Notification task {task.get_name()} cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Notification task {task.get_name()} failed: {exc}", exc_info=exc
            )

    async def flush(self) -> None:
        while self.tasks:
            _ = await asyncio.gather(*list(self.tasks), return_exceptions=True)

    async def start(self):
        self.running = True
        logger.info("Notification dispatcher started")

    async def stop(self, timeout: float = 10.0):
        if not self.running:
            return

        self.running = False
        logger.info(f"Stopping notification dispatcher ({self.pending} pending)...")

        try:
            await asyncio.wait_for(self.flush(), timeout=timeout)
        except asyncio.TimeoutError:
            for task in list(self.tasks):
                _ = task.cancel()
            _ = await asyncio.gather(*list(self.tasks), return_exceptions=True)
            self.tasks.clear()
            logger.warning("Pending notifications cancelled on shutdown")

        logger.info("Notification dispatcher stopped")


notification_tasks = NotificationDispatcher()


async def startup_background_tasks():
    await notification_tasks.start()


async def shutdown_background_tasks():
    await notification_tasks.stop()
