"""
Motion Resolver - Where an instruction would take the bot.

Pure: never reads the grid, never fails. Legality of the candidate is
the executor's job. A jump lands two cells ahead and never looks at the
cell it clears.
"""

from __future__ import annotations

from .grid import Position
from .instruction import Direction, Instruction, InstructionType


def resolve(
    pos: Position,
    direction: Direction,
    instruction: Instruction | InstructionType,
) -> tuple[Position, Direction]:
    """Return the candidate (position, direction) after the instruction."""
    instruction_type = (
        instruction.instruction_type if isinstance(instruction, Instruction) else instruction
    )

    if instruction_type == InstructionType.TURN_LEFT:
        return pos, direction.turned_left()
    if instruction_type == InstructionType.TURN_RIGHT:
        return pos, direction.turned_right()

    dx, dz = direction.delta
    distance = instruction_type.distance
    return pos.shifted(dx * distance, dz * distance), direction
