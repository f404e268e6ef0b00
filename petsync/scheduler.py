from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Mapping, Optional

from anyio import to_thread

from .store import Trigger, TriggerStore

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_MINUTES = 60


class SyncState:
    def __init__(self) -> None:
        self.running = False
        self.last_started: Optional[float] = None
        self.last_finished: Optional[float] = None
        self.last_error: Optional[str] = None
        self.last_message: Optional[str] = None
        self.last_rows: Optional[int] = None
        self.total_runs = 0
        self.total_errors = 0


state = SyncState()


def notify(message: str, level: int = logging.INFO) -> None:
    """Log ``message`` and keep it as the latest user-facing notice."""
    logger.log(level, message)
    state.last_message = message


class TriggerScheduler:
    """Time-based triggers keyed by the handler name they invoke."""

    def __init__(self, store: TriggerStore) -> None:
        self.store = store

    def triggers(self, handler: Optional[str] = None) -> list[Trigger]:
        return self.store.find(handler)

    def ensure(self, handler: str, period_minutes: int = DEFAULT_PERIOD_MINUTES) -> Trigger:
        existing = self.store.find(handler)
        if existing:
            return existing[0]
        trigger = self.store.add(handler, period_minutes)
        logger.info("Created trigger for %s every %d minute(s)", handler, period_minutes)
        return trigger

    def configure(
        self,
        handler: str,
        period_minutes: int = DEFAULT_PERIOD_MINUTES,
        enabled: bool = True,
    ) -> Optional[Trigger]:
        # delete-then-create is not atomic; overlapping callers can briefly
        # observe zero or two triggers
        if enabled and period_minutes < 1:
            raise ValueError("period_minutes must be at least 1")
        removed = self.store.delete_for(handler)
        if removed:
            logger.info("Removed %d trigger(s) for %s", removed, handler)
        if not enabled:
            return None
        trigger = self.store.add(handler, period_minutes)
        logger.info("Scheduled %s every %d minute(s)", handler, period_minutes)
        return trigger

    def due(self, now: Optional[float] = None) -> list[Trigger]:
        now = time.time() if now is None else now
        out = []
        for trigger in self.store.find():
            last = trigger.last_run_at or trigger.created_at
            if now - last >= trigger.period_minutes * 60:
                out.append(trigger)
        return out

    def mark_run(self, trigger: Trigger, at: Optional[float] = None) -> None:
        if trigger.id is not None:
            self.store.mark_run(trigger.id, int(at) if at is not None else None)


async def run_triggers(
    scheduler: TriggerScheduler,
    handlers: Mapping[str, Callable[[], object]],
    poll_seconds: float = 30,
) -> None:
    while True:
        await asyncio.sleep(poll_seconds)
        for trigger in await to_thread.run_sync(scheduler.due):
            if state.running:
                logger.info("Skipping %s, a run is already in progress", trigger.handler)
                continue
            await to_thread.run_sync(scheduler.mark_run, trigger)
            handler = handlers.get(trigger.handler)
            if handler is None:
                logger.warning("No handler registered for trigger %s", trigger.handler)
                continue
            try:
                await to_thread.run_sync(handler)
            except Exception:  # noqa: BLE001
                # the handler has already logged and recorded the failure
                continue
