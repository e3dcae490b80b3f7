"""
Orientation Levels

The built-in training modules, played in order. Each module unlocks
the next one; finishing the last earns the Orientation badge.

Grid codes: 0 void, 1 path, 2 start, 3 goal, 4 wall.
"""

from __future__ import annotations

from ..engine_core.grid import Grid
from ..engine_core.instruction import Direction
from ..level_schema.level_spec import LevelSpec

ORIENTATION_BADGE = "Orientation"


def create_orientation_levels() -> list[LevelSpec]:
    """Create the six orientation modules."""
    return [
        LevelSpec(
            level_id=1,
            name="Module 1: Forward Motion",
            description="Orientation: Program Qbo to move forward to the goal.",
            start_dir=Direction.EAST,
            par=3,
            grid=Grid([
                [0, 0, 0, 0, 0],
                [0, 2, 1, 1, 3],
                [0, 0, 0, 0, 0],
            ]),
        ),
        LevelSpec(
            level_id=2,
            name="Module 2: Turning",
            description="Orientation: Qbo needs to turn to reach the destination.",
            start_dir=Direction.EAST,
            par=4,
            grid=Grid([
                [0, 0, 0, 0, 0, 0],
                [0, 2, 1, 1, 0, 0],
                [0, 0, 0, 1, 0, 0],
                [0, 0, 0, 3, 0, 0],
                [0, 0, 0, 0, 0, 0],
            ]),
        ),
        LevelSpec(
            level_id=3,
            name="Module 3: Obstacles",
            description="Orientation: Avoid the walls! Navigate Qbo around the obstacles.",
            start_dir=Direction.EAST,
            par=6,
            grid=Grid([
                [0, 0, 0, 0, 0, 0],
                [0, 2, 1, 4, 1, 3],
                [0, 0, 1, 4, 1, 0],
                [0, 0, 1, 1, 1, 0],
                [0, 0, 0, 0, 0, 0],
            ]),
        ),
        LevelSpec(
            level_id=4,
            name="Module 4: Jumping",
            description="Orientation: Use the Jump module to cross the gaps.",
            start_dir=Direction.EAST,
            par=5,
            grid=Grid([
                [0, 0, 0, 0, 0, 0],
                [0, 2, 1, 0, 1, 3],
                [0, 0, 0, 0, 0, 0],
            ]),
        ),
        LevelSpec(
            level_id=5,
            name="Module 5: Advanced Maneuvers",
            description="Orientation: Combine turning and jumping to solve this pattern.",
            start_dir=Direction.SOUTH,
            par=9,
            grid=Grid([
                [0, 2, 0, 0, 0, 0],
                [0, 1, 0, 1, 1, 3],
                [0, 1, 0, 1, 0, 0],
                [0, 1, 1, 1, 0, 0],
                [0, 0, 0, 0, 0, 0],
            ]),
        ),
        LevelSpec(
            level_id=6,
            name="Module 6: Final Exam",
            description=(
                "Orientation: Prove your skills. Navigate walls and voids to earn your Badge."
            ),
            start_dir=Direction.EAST,
            par=12,
            grid=Grid([
                [0, 0, 0, 0, 0, 0, 0],
                [0, 2, 1, 1, 4, 3, 0],  # Wall blocking direct path
                [0, 0, 0, 1, 4, 1, 0],
                [0, 0, 0, 1, 0, 1, 0],  # Gap to jump
                [0, 0, 0, 1, 1, 1, 0],
                [0, 0, 0, 0, 0, 0, 0],
            ]),
        ),
    ]


ORIENTATION_LEVELS: list[LevelSpec] = create_orientation_levels()


def get_level(level_id: int | str) -> LevelSpec | None:
    """Get a built-in level by id ("3" and 3 both match)."""
    for level in ORIENTATION_LEVELS:
        if str(level.level_id) == str(level_id):
            return level
    return None
