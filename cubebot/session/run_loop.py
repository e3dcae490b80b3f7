"""
Run Loop - Plays a program at animation speed.

The loop:
1. Publishes the reset snapshot synchronously
2. Drives Executor.run() inside one asyncio task
3. Waits out each event's delay before publishing it
4. Notifies observers (renderer, UI, websocket) of every event

Starting a new run or resetting invalidates the run in flight: its
task may still wake up, but it stops without publishing anything.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Awaitable, Callable, Generator, Sequence, TYPE_CHECKING
import asyncio
import logging

from ..config import EngineConfig
from ..engine_core.executor import Executor, RunEvent, RunEventType, RunResult
from ..engine_core.instruction import Instruction
from ..engine_core.state import RunOutcome, RunState, Snapshot

if TYPE_CHECKING:
    from ..level_schema import LevelSpec

logger = logging.getLogger(__name__)

RunObserver = Callable[[RunEvent], Any]
SleepFn = Callable[[float], Awaitable[Any]]


class LoopState(Enum):
    """State of the run loop."""
    IDLE = "idle"  # Reset, nothing running
    RUNNING = "running"
    FINISHED = "finished"  # Last run reached WON or LOST


class RunLoop:
    """
    The timed run driver for one level.

    Usage:
        loop = RunLoop(level, EngineConfig())
        loop.subscribe(renderer.on_event)

        outcome = await loop.run(program)

    Only one run is live at a time. There is a single writer (this loop)
    and execution is cooperative, so no locking is needed.
    """

    def __init__(
        self,
        level: LevelSpec,
        config: EngineConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.executor = Executor(level, config)
        self.level = level
        self._sleep = sleep
        self._observers: list[RunObserver] = []
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

        initial = self.executor.reset()
        self.state = LoopState.IDLE
        self.snapshot: Snapshot = initial.snapshot()
        self.outcome: RunOutcome | None = None

    @property
    def config(self) -> EngineConfig:
        return self.executor.config

    @property
    def is_running(self) -> bool:
        return self.state == LoopState.RUNNING

    def subscribe(self, observer: RunObserver) -> Callable[[], None]:
        """Register an observer. Returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def reset(self) -> Snapshot:
        """
        Abort any run in flight and return to the start.

        Synchronous: the reset snapshot is published before returning.
        """
        self._invalidate()
        state = self.executor.reset()
        self.state = LoopState.IDLE
        self.outcome = None
        self._publish(RunEvent(RunEventType.RESET, state.snapshot()))
        return self.snapshot

    def cancel(self):
        """Abandon any run in flight without publishing anything."""
        self._invalidate()
        if self.state == LoopState.RUNNING:
            self.state = LoopState.IDLE

    def start(self, program: Sequence[Instruction]) -> asyncio.Task:
        """
        Start a run and return its task.

        Must be called from a running event loop. The reset snapshot is
        published before this returns; the rest follows in the task.
        """
        self._invalidate()
        generation = self._generation
        runner = self.executor.run(list(program))

        # Reset event has no delay, publish it now
        self._publish(next(runner))
        self.state = LoopState.RUNNING
        self.outcome = None

        task = asyncio.get_running_loop().create_task(self._drive(generation, runner))
        # Stale tasks stay referenced until they wake up and exit
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, program: Sequence[Instruction]) -> RunOutcome | None:
        """
        Run a program to completion at animation speed.

        Returns the outcome, or None if a later run or reset superseded it.
        """
        return await self.start(program)

    def run_instant(self, program: Sequence[Instruction]) -> RunResult:
        """
        Run a program with no waiting, publishing every event.

        For clients that animate on their own from the returned snapshots.
        """
        self._invalidate()
        result = self.executor.execute(list(program))
        for event in result.events:
            self._publish(event)
        self.state = LoopState.FINISHED
        self.outcome = result.outcome
        return result

    async def _drive(
        self,
        generation: int,
        runner: Generator[RunEvent, None, RunState],
    ) -> RunOutcome | None:
        try:
            for event in runner:
                await self._sleep(event.delay)
                if generation != self._generation:
                    logger.debug("Run %d superseded, stopping", generation)
                    return None
                self._publish(event)
                if event.is_terminal:
                    self.state = LoopState.FINISHED
                    self.outcome = event.snapshot.outcome
                    return self.outcome
        finally:
            runner.close()
        return None

    def _invalidate(self):
        """Make any in-flight run stale."""
        self._generation += 1

    def _publish(self, event: RunEvent):
        self.snapshot = event.snapshot
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                # A broken observer must not stop the run
                logger.warning("Run observer %r failed", observer, exc_info=True)
