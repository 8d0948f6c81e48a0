"""Background worker feeding ledger game events to the lifecycle handler."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from kingtiles_relayer.application.background import BackgroundTasks
from kingtiles_relayer.application.ports.events import GameEventSource
from kingtiles_relayer.application.services.events import GameStartedHandler

if TYPE_CHECKING:
    from kingtiles_relayer.runtime.bootstrap import RuntimeContext

logger = logging.getLogger("kingtiles_relayer.events")


class EventListener:
    """Consumes the event source and handles each event in its own task."""

    worker_name = "kingtiles-event-listener"

    def __init__(
        self,
        *,
        source: GameEventSource,
        handler: GameStartedHandler,
        tasks: BackgroundTasks,
    ) -> None:
        self._source = source
        self._handler = handler
        self._tasks = tasks
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name=self.worker_name)

    async def stop(self, *, timeout: float = 5.0) -> None:
        task = self._task
        if task is None:
            return
        self._source.close()
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    @property
    def running(self) -> bool:
        task = self._task
        return bool(task is not None and not task.done())

    async def _run(self) -> None:
        try:
            async for event in self._source.subscribe():
                self._tasks.spawn(self._handler.handle(event), name=f"game-started-{event.session_id}")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("event stream failed; relying on the watchdog")
            return
        logger.info("event stream ended")


def create_event_listener(context: RuntimeContext) -> EventListener:
    return EventListener(source=context.event_source, handler=context.event_handler, tasks=context.tasks)


__all__ = ["EventListener", "create_event_listener"]
