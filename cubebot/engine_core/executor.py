"""
Executor - Runs a program against a level.

The executor is the single point of run-state mutation.
State machine: IDLE -> RUNNING -> {WON, LOST}; terminal until reset.

Design principles:
- Pure transitions: reset/apply/collect/finish take a RunState, return a new one
- Legality is checked on the destination cell of MOVE/JUMP only
- A jump never looks at the cell it clears
- Losing is an outcome, not an exception
- run() is a generator: one event per suspension boundary, so any
  scheduler (asyncio, a game loop, a test) decides how to wait
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generator, Sequence
import logging

from ..config import EngineConfig
from .grid import CellType, Position
from .instruction import Instruction, InstructionType
from .motion import resolve
from .state import LossReason, RunOutcome, RunState, RunStatus, Snapshot

if TYPE_CHECKING:
    from ..level_schema import LevelSpec

logger = logging.getLogger(__name__)


class RunEventType(Enum):
    """Suspension boundaries of a run."""
    RESET = "reset"  # Initial snapshot
    COMMIT = "commit"  # New position/direction committed
    COLLECT = "collect"  # Collection check done for the committed cell
    FAILED = "failed"  # Legality failure, run over
    FINISHED = "finished"  # Win check done, run over


@dataclass(frozen=True)
class RunEvent:
    """
    One observable step of a run.

    delay is the suspension observed BEFORE this event is published,
    in seconds. instruction_index is None for RESET and FINISHED.
    """
    event_type: RunEventType
    snapshot: Snapshot
    delay: float = 0.0
    instruction_index: int | None = None
    collected: Position | None = None  # Goal newly collected by this event

    @property
    def is_terminal(self) -> bool:
        return self.event_type in {RunEventType.FAILED, RunEventType.FINISHED}


@dataclass
class StepResult:
    """
    Result of a single transition.

    Contains the new state and whether a move was committed or a goal collected.
    """
    state: RunState
    committed: bool = False
    collected: Position | None = None


@dataclass
class RunResult:
    """A fully drained run: every event plus the final outcome."""
    events: list[RunEvent]
    final_state: RunState

    @property
    def outcome(self) -> RunOutcome:
        return self.final_state.outcome

    @property
    def snapshots(self) -> list[Snapshot]:
        return [event.snapshot for event in self.events]

    @property
    def committed_count(self) -> int:
        return sum(1 for e in self.events if e.event_type == RunEventType.COMMIT)

    @property
    def total_delay(self) -> float:
        return sum(event.delay for event in self.events)


class Executor:
    """
    Executes instruction programs for one level.

    Construction validates the level's start cell, so a malformed level
    raises InvalidLevel before any run can begin.

    Usage:
        executor = Executor(level)
        for event in executor.run(program):
            show(event.snapshot)
    """

    def __init__(self, level: LevelSpec, config: EngineConfig | None = None):
        self.level = level
        self.grid = level.grid
        self.config = config or EngineConfig()
        self.start = self.grid.find_start()
        self.goal_count = self.grid.count_goals()

    def reset(self) -> RunState:
        """
        Initial state: start cell, level start direction, nothing collected.

        A goal under the start tile is collected immediately.
        """
        collected: frozenset[Position] = frozenset()
        if self.grid.cell_at_position(self.start) == CellType.GOAL:
            collected = frozenset({self.start})
        return RunState(
            position=self.start,
            direction=self.level.start_dir,
            collected=collected,
            status=RunStatus.IDLE,
        )

    def begin(self, state: RunState) -> RunState:
        """IDLE -> RUNNING."""
        if state.status != RunStatus.IDLE:
            raise RuntimeError(f"Cannot start a run from {state.status.value}; reset first")
        return state._copy_with(status=RunStatus.RUNNING)

    def apply(self, state: RunState, instruction: Instruction, index: int) -> StepResult:
        """
        Mark the instruction active, resolve it and commit it if legal.

        Returns a LOST state (not an exception) when the destination is
        outside the grid, a void or a wall.
        """
        if state.status != RunStatus.RUNNING:
            raise RuntimeError(f"Run is not in progress ({state.status.value})")

        instruction_type = instruction.instruction_type
        state = state._copy_with(active_index=index, is_jumping=False)
        candidate, direction = resolve(state.position, state.direction, instruction)

        if instruction_type.is_translation:
            reason = self._check_destination(candidate)
            if reason:
                logger.debug("Step %d %s: lost (%s)", index, instruction_type.value, reason.value)
                return StepResult(state=state._copy_with(status=RunStatus.LOST, loss_reason=reason))

        new_state = state._copy_with(
            position=candidate,
            direction=direction,
            is_jumping=instruction_type == InstructionType.JUMP,
            steps_committed=state.steps_committed + 1,
        )
        logger.debug(
            "Step %d %s: now at %s facing %s",
            index, instruction_type.value, candidate.key, direction.name,
        )
        return StepResult(state=new_state, committed=True)

    def collect(self, state: RunState) -> StepResult:
        """Collect the goal under the bot, if any and not already collected."""
        pos = state.position
        if self.grid.cell_at_position(pos) == CellType.GOAL and pos not in state.collected:
            logger.debug("Collected goal at %s", pos.key)
            return StepResult(state=state.with_collected(pos), collected=pos)
        return StepResult(state=state)

    def finish(self, state: RunState) -> RunState:
        """All instructions done: WON iff every goal was collected."""
        state = state._copy_with(active_index=None, is_jumping=False)
        if len(state.collected) == self.goal_count:
            return state._copy_with(status=RunStatus.WON, loss_reason=None)
        return state._copy_with(status=RunStatus.LOST, loss_reason=LossReason.GOAL_NOT_REACHED)

    def run(self, program: Sequence[Instruction]) -> Generator[RunEvent, None, RunState]:
        """
        Run a program from a fresh reset, one event per suspension boundary.

        Timing per step: the previous step's settle delay, COMMIT, the
        arrival delay, COLLECT. A legality failure is published straight
        away with no collection check. After the last step: settle plus
        the post-run settle, then FINISHED.

        Returns the final RunState (StopIteration.value).
        """
        config = self.config
        state = self.reset()
        yield RunEvent(RunEventType.RESET, state.snapshot())

        logger.info(
            "Running %d instruction(s) on level %s", len(program), self.level.level_id
        )
        state = self.begin(state)
        pending_delay = config.reset_settle

        for index, instruction in enumerate(program):
            result = self.apply(state, instruction, index)
            state = result.state

            if state.status == RunStatus.LOST:
                yield RunEvent(
                    RunEventType.FAILED,
                    state.snapshot(),
                    delay=pending_delay,
                    instruction_index=index,
                )
                logger.info("Run lost at step %d: %s", index, state.loss_reason.value)
                return state

            yield RunEvent(
                RunEventType.COMMIT,
                state.snapshot(),
                delay=pending_delay,
                instruction_index=index,
            )

            result = self.collect(state)
            state = result.state
            yield RunEvent(
                RunEventType.COLLECT,
                state.snapshot(),
                delay=config.arrival_delay,
                instruction_index=index,
                collected=result.collected,
            )
            pending_delay = config.settle_delay

        state = self.finish(state)
        yield RunEvent(
            RunEventType.FINISHED,
            state.snapshot(),
            delay=pending_delay + config.post_run_settle,
        )
        logger.info("Run finished: %s", state.outcome.message)
        return state

    def execute(self, program: Sequence[Instruction]) -> RunResult:
        """Drain run() without waiting. Used by the API, the CLI and the solver."""
        events: list[RunEvent] = []
        runner = self.run(program)
        while True:
            try:
                events.append(next(runner))
            except StopIteration as stop:
                return RunResult(events=events, final_state=stop.value)

    def _check_destination(self, pos: Position) -> LossReason | None:
        """Legality of the destination cell. The source cell is never checked."""
        if not self.grid.in_bounds(pos.x, pos.z):
            return LossReason.FELL_OFF_WORLD
        cell = self.grid.cell_at_position(pos)
        if cell == CellType.VOID:
            return LossReason.FELL_INTO_VOID
        if cell == CellType.WALL:
            return LossReason.HIT_WALL
        return None


def execute_program(
    level: LevelSpec,
    program: Sequence[Instruction],
    config: EngineConfig | None = None,
) -> RunResult:
    """
    Convenience function to run a whole program instantly.
    """
    return Executor(level, config or EngineConfig.instant()).execute(program)
