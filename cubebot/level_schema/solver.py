"""
Level Solver - Breadth-first search for the shortest winning program.

Searches over (position, direction, collected goals) using the executor's
own transitions, so a found solution is guaranteed to win when run.
"""

from __future__ import annotations
from collections import deque
from typing import TYPE_CHECKING

from ..engine_core.executor import Executor
from ..engine_core.instruction import Instruction, InstructionType
from ..engine_core.state import RunState, RunStatus

if TYPE_CHECKING:
    from .level_spec import LevelSpec

DEFAULT_MAX_LENGTH = 24

# Search order: moves first so equally short solutions prefer walking
SEARCH_ORDER = (
    InstructionType.MOVE,
    InstructionType.TURN_LEFT,
    InstructionType.TURN_RIGHT,
    InstructionType.JUMP,
)


def _state_key(state: RunState) -> tuple:
    return state.position, state.direction, state.collected


def solve(
    level: LevelSpec,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> list[InstructionType] | None:
    """
    Find the shortest winning program.

    Returns the instruction types in order, [] when the level is already
    won by an empty program, or None when no program of at most
    max_length instructions wins.
    """
    executor = Executor(level)
    start = executor.begin(executor.reset())

    if len(start.collected) == executor.goal_count:
        return []

    queue: deque[tuple[RunState, list[InstructionType]]] = deque([(start, [])])
    seen = {_state_key(start)}

    while queue:
        state, path = queue.popleft()
        if len(path) >= max_length:
            continue

        for instruction_type in SEARCH_ORDER:
            result = executor.apply(state, Instruction(instruction_type, "search"), len(path))
            if result.state.status == RunStatus.LOST:
                continue
            nxt = executor.collect(result.state).state
            key = _state_key(nxt)
            if key in seen:
                continue
            seen.add(key)

            new_path = path + [instruction_type]
            if len(nxt.collected) == executor.goal_count:
                return new_path
            queue.append((nxt, new_path))

    return None
