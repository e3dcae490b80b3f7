"""
Engine Core - Deterministic program execution.

The engine is the runtime that:
1. Reads a level's Grid
2. Resolves each instruction to a candidate move
3. Checks legality of the destination
4. Tracks collected goals
5. Decides the run outcome
"""

from .grid import CellType, Grid, Position, InvalidLevel, OutOfBounds
from .instruction import Direction, Instruction, InstructionType, parse_program
from .motion import resolve
from .state import RunStatus, LossReason, RunOutcome, RunState, Snapshot
from .executor import (
    Executor,
    RunEvent,
    RunEventType,
    RunResult,
    StepResult,
    execute_program,
)

__all__ = [
    "CellType",
    "Grid",
    "Position",
    "InvalidLevel",
    "OutOfBounds",
    "Direction",
    "Instruction",
    "InstructionType",
    "parse_program",
    "resolve",
    "RunStatus",
    "LossReason",
    "RunOutcome",
    "RunState",
    "Snapshot",
    "Executor",
    "RunEvent",
    "RunEventType",
    "RunResult",
    "StepResult",
    "execute_program",
]
