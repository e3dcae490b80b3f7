"""
Run State - The transient state of one program run.

Design principles:
- Immutable: every transition returns a new RunState
- Owned by the executor; collaborators only see Snapshots
- Never persisted: created at reset, replaced at the next reset
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .grid import Position
from .instruction import Direction


class RunStatus(Enum):
    """Executor state machine states."""
    IDLE = "idle"
    RUNNING = "running"
    WON = "won"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        return self in {RunStatus.WON, RunStatus.LOST}


class LossReason(Enum):
    """Why a run ended in LOST."""
    FELL_OFF_WORLD = "FellOffWorld"
    FELL_INTO_VOID = "FellIntoVoid"
    HIT_WALL = "HitWall"
    GOAL_NOT_REACHED = "GoalNotReached"

    @property
    def message(self) -> str:
        return LOSS_MESSAGES[self]


LOSS_MESSAGES: dict[LossReason, str] = {
    LossReason.FELL_OFF_WORLD: "Qbo fell off the world!",
    LossReason.FELL_INTO_VOID: "Qbo fell into the void!",
    LossReason.HIT_WALL: "Qbo crashed into a wall!",
    LossReason.GOAL_NOT_REACHED: "Goal not reached.",
}

FALLBACK_LOSS_MESSAGE = "Try again."
WIN_MESSAGE = "Module complete!"


@dataclass(frozen=True)
class RunOutcome:
    """
    Result of a run as shown to the learner.

    IN_PROGRESS is represented by a non-terminal status (IDLE/RUNNING).
    """
    status: RunStatus
    reason: LossReason | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def won(self) -> bool:
        return self.status == RunStatus.WON

    @property
    def message(self) -> str:
        """Human-readable result line."""
        if self.status == RunStatus.WON:
            return WIN_MESSAGE
        if self.status == RunStatus.LOST:
            return self.reason.message if self.reason else FALLBACK_LOSS_MESSAGE
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }


@dataclass(frozen=True)
class Snapshot:
    """
    What a renderer or UI may observe at a suspension boundary.

    active_index is None when no instruction is highlighted.
    """
    position: Position
    direction: Direction
    is_jumping: bool
    collected: frozenset[Position]
    active_index: int | None
    status: RunStatus
    reason: LossReason | None = None

    @property
    def outcome(self) -> RunOutcome:
        return RunOutcome(status=self.status, reason=self.reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": {"x": self.position.x, "z": self.position.z},
            "direction": self.direction.name,
            "is_jumping": self.is_jumping,
            "collected": sorted(p.key for p in self.collected),
            "active_index": self.active_index,
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
        }


@dataclass(frozen=True)
class RunState:
    """
    Complete executor state at a point in a run.

    All state changes go through the Executor.
    """
    position: Position
    direction: Direction
    collected: frozenset[Position] = field(default_factory=frozenset)
    status: RunStatus = RunStatus.IDLE
    loss_reason: LossReason | None = None
    active_index: int | None = None
    is_jumping: bool = False

    # Number of instructions committed so far
    steps_committed: int = 0

    @property
    def outcome(self) -> RunOutcome:
        return RunOutcome(status=self.status, reason=self.loss_reason)

    def with_collected(self, pos: Position) -> RunState:
        return self._copy_with(collected=self.collected | {pos})

    def _copy_with(self, **kwargs) -> RunState:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            position=self.position,
            direction=self.direction,
            is_jumping=self.is_jumping,
            collected=self.collected,
            active_index=self.active_index,
            status=self.status,
            reason=self.loss_reason,
        )
