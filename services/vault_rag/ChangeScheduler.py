"""Debounced scheduling of re-indexing after content changes.

The scheduling rules live in pure functions over an immutable SchedulerState,
so they can be tested without an event loop. ChangeScheduler drives them with
a real clock and a single asyncio timer.
"""

import asyncio
import time
from typing import Callable

from pydantic import BaseModel, ConfigDict

from services.vault_rag.IndexStore import IndexStore
from services.vault_rag.SyncService import SyncService
from shared.helper.HelperConfig import HelperConfig
from shared.models.events import ChangeEvent, ChangeKind, SyncReport

PHASE_IDLE = "idle"
PHASE_ARMED = "armed"
PHASE_RUNNING = "running"


class SchedulerState(BaseModel):
    """Snapshot of the scheduler.

    Attributes:
        pending:   Paths changed since the last batch was taken.
        deadline:  Monotonic time at which pending paths become due, or None.
        running:   Whether a batch is being processed.
    """

    model_config = ConfigDict(frozen=True)

    pending: frozenset[str] = frozenset()
    deadline: float | None = None
    running: bool = False

    @property
    def phase(self) -> str:
        if self.running:
            return PHASE_RUNNING
        if self.deadline is not None:
            return PHASE_ARMED
        return PHASE_IDLE


################ TRANSITIONS ##################
def on_change(state: SchedulerState, path: str, now: float, window: float) -> SchedulerState:
    """A document was created or modified: queue it and restart the quiet period."""
    return state.model_copy(update={"pending": state.pending | {path}, "deadline": now + window})


def on_delete(state: SchedulerState, path: str) -> SchedulerState:
    """A document was deleted: it no longer needs indexing."""
    pending = state.pending - {path}
    deadline = state.deadline if pending else None
    return state.model_copy(update={"pending": pending, "deadline": deadline})


def on_timer(state: SchedulerState, now: float, window: float) -> tuple[SchedulerState, frozenset[str]]:
    """The timer fired.

    Returns:
        tuple: (new state, batch). The batch is empty unless pending paths were
            due and no other batch is running. Paths that come due during a
            running batch stay pending and the deadline is pushed back.
    """
    if state.deadline is None or now < state.deadline:
        return state, frozenset()
    if not state.pending:
        return state.model_copy(update={"deadline": None}), frozenset()
    if state.running:
        return state.model_copy(update={"deadline": now + window}), frozenset()
    batch = state.pending
    return SchedulerState(pending=frozenset(), deadline=None, running=True), batch


def on_batch_done(state: SchedulerState) -> SchedulerState:
    return state.model_copy(update={"running": False})


class ChangeScheduler:
    """Turns a stream of change events into debounced re-indexing batches."""

    def __init__(
        self,
        helper_config: HelperConfig,
        index_store: IndexStore,
        sync_service: SyncService,
        window: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._index_store = index_store
        self._sync_service = sync_service
        self._window = window
        self._clock = clock
        self._state = SchedulerState()
        self._timer: asyncio.TimerHandle | None = None
        self._batch_task: asyncio.Task | None = None
        self._closed = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_state(self) -> SchedulerState:
        return self._state

    def get_window(self) -> float:
        return self._window

    def set_window(self, window: float) -> None:
        """Applies from the next change event on."""
        self._window = window

    ##########################################
    ################ EVENTS ##################
    ##########################################

    async def handle_event(self, event: ChangeEvent) -> None:
        """Apply one change event. Deletions are processed right away."""
        if self._closed:
            return
        if event.kind == ChangeKind.DELETED:
            await self._remove(event.path)
        elif event.kind == ChangeKind.RENAMED:
            if event.old_path:
                await self._remove(event.old_path)
            self._on_change(event.path)
        else:
            self._on_change(event.path)

    def _on_change(self, path: str) -> None:
        self._state = on_change(self._state, path, self._clock(), self._window)
        self.logging.debug("Queued '%s' for re-indexing (%d pending).", path, len(self._state.pending))
        self._arm()

    async def _remove(self, path: str) -> None:
        self._state = on_delete(self._state, path)
        if not self._state.pending:
            self._cancel_timer()
        await self._index_store.remove_document(path)

    ##########################################
    ################# TIMER ##################
    ##########################################

    def _arm(self) -> None:
        self._cancel_timer()
        if self._closed or self._state.deadline is None:
            return
        loop = asyncio.get_running_loop()
        delay = max(0.0, self._state.deadline - self._clock())
        self._timer = loop.call_later(delay, self._on_timer_fired)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer_fired(self) -> None:
        self._timer = None
        self._batch_task = asyncio.ensure_future(self.tick())

    async def tick(self) -> SyncReport | None:
        """Process pending paths if their quiet period is over.

        Returns:
            SyncReport | None: The report of the batch that ran, or None.
        """
        self._state, batch = on_timer(self._state, self._clock(), self._window)
        if not batch:
            self._arm()
            return None

        report = None
        try:
            self.logging.info("Re-indexing %d changed document(s).", len(batch))
            report = await self._sync_service.do_sync_paths(sorted(batch))
        except Exception as exc:
            self.logging.error("Background re-indexing failed: %s", exc)
        finally:
            self._state = on_batch_done(self._state)
            if self._state.pending and not self._closed:
                self._arm()
        return report

    def close(self) -> None:
        """Stop scheduling. A batch already running is left to finish."""
        self._closed = True
        self._cancel_timer()
