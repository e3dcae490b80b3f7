"""
Instruction System - Directions, instruction types and instructions.

A program is a fixed-length linear list of instructions.
There are no loops, conditionals or procedures.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntEnum
import uuid


class Direction(IntEnum):
    """Compass directions, cyclically ordered clockwise."""
    NORTH = 0  # -z
    EAST = 1  # +x
    SOUTH = 2  # +z
    WEST = 3  # -x

    @property
    def delta(self) -> tuple[int, int]:
        """Unit vector (dx, dz) for this direction."""
        return DIRECTION_DELTAS[self]

    def turned_left(self) -> Direction:
        return Direction((self - 1) % 4)

    def turned_right(self) -> Direction:
        return Direction((self + 1) % 4)


DIRECTION_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.NORTH: (0, -1),
    Direction.EAST: (1, 0),
    Direction.SOUTH: (0, 1),
    Direction.WEST: (-1, 0),
}


class InstructionType(Enum):
    """Block types the learner can place."""
    MOVE = "MOVE"
    JUMP = "JUMP"
    TURN_LEFT = "TURN_LEFT"
    TURN_RIGHT = "TURN_RIGHT"

    @property
    def is_translation(self) -> bool:
        """Whether the instruction changes position (and so can be fatal)."""
        return self in {InstructionType.MOVE, InstructionType.JUMP}

    @property
    def distance(self) -> int:
        return {InstructionType.MOVE: 1, InstructionType.JUMP: 2}.get(self, 0)


@dataclass(frozen=True)
class Instruction:
    """
    One block in a program.

    The id comes from the authoring UI and is opaque to the engine.
    """
    instruction_type: InstructionType
    instruction_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    @classmethod
    def move(cls) -> Instruction:
        return cls(InstructionType.MOVE)

    @classmethod
    def jump(cls) -> Instruction:
        return cls(InstructionType.JUMP)

    @classmethod
    def turn_left(cls) -> Instruction:
        return cls(InstructionType.TURN_LEFT)

    @classmethod
    def turn_right(cls) -> Instruction:
        return cls(InstructionType.TURN_RIGHT)


def parse_program(types: list[str] | tuple[str, ...]) -> list[Instruction]:
    """
    Build a program from type names, e.g. ["MOVE", "turn_left"].

    Raises ValueError for unknown names.
    """
    program = []
    for name in types:
        try:
            instruction_type = InstructionType(name.strip().upper())
        except ValueError:
            valid = ", ".join(t.value for t in InstructionType)
            raise ValueError(f"Unknown instruction '{name}' (expected one of {valid})")
        program.append(Instruction(instruction_type))
    return program
