"""
Level Spec - A playable level definition.

Level documents are JSON objects shaped like:

    {
        "id": 1,
        "name": "Module 1: Forward Motion",
        "description": "Program Qbo to move forward to the goal.",
        "grid": [[0, 0, 0], [0, 2, 3], [0, 0, 0]],
        "startDir": 1,
        "par": 3
    }

The same shape comes back from the AI level generator and from level files.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

from ..engine_core.grid import Grid, InvalidLevel
from ..engine_core.instruction import Direction


@dataclass
class LevelSpec:
    """
    Complete level definition.

    The grid is immutable; a level is never changed once loaded.
    """
    level_id: int | str
    name: str
    grid: Grid
    start_dir: Direction = Direction.EAST
    description: str = ""
    par: int = 0  # Ideal number of blocks, 0 if unknown

    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def goal_count(self) -> int:
        return self.grid.count_goals()

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) of the grid."""
        return self.grid.width, self.grid.height


def _parse_direction(value: Any) -> Direction:
    if isinstance(value, Direction):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Not a direction: {value!r}")
    if isinstance(value, int):
        return Direction(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return Direction(int(text))
        return Direction[text.upper()]
    raise TypeError(f"Not a direction: {value!r}")


def level_from_dict(data: dict[str, Any]) -> LevelSpec:
    """
    Build a LevelSpec from a level document.

    Raises InvalidLevel listing every problem found.
    """
    if not isinstance(data, dict):
        raise InvalidLevel("Level document must be a JSON object")

    errors: list[str] = []

    level_id = data.get("id", data.get("level_id"))
    if level_id is None or level_id == "":
        errors.append("Level id is required")

    name = data.get("name")
    if not name:
        errors.append("Level name is required")

    grid = None
    rows = data.get("grid")
    if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
        errors.append("Level grid must be a list of rows")
    else:
        try:
            grid = Grid(rows)
        except InvalidLevel as e:
            errors.extend(e.errors)

    start_dir = Direction.EAST
    raw_dir = data.get("startDir", data.get("start_dir", Direction.EAST))
    try:
        start_dir = _parse_direction(raw_dir)
    except (KeyError, ValueError, TypeError):
        errors.append(f"Unknown start direction {raw_dir!r}")

    par = data.get("par", 0)
    if not isinstance(par, int) or isinstance(par, bool):
        errors.append(f"Level par must be an integer, got {par!r}")
        par = 0

    metadata = data.get("metadata", {})
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        errors.append(f"Level metadata must be an object, got {type(metadata).__name__}")
        metadata = {}

    if errors:
        raise InvalidLevel(errors)

    return LevelSpec(
        level_id=level_id,
        name=name,
        grid=grid,
        start_dir=start_dir,
        description=data.get("description", ""),
        par=par,
        metadata=dict(metadata),
    )


def level_to_dict(level: LevelSpec) -> dict[str, Any]:
    """Serialize a level to its document shape."""
    data: dict[str, Any] = {
        "id": level.level_id,
        "name": level.name,
        "description": level.description,
        "grid": level.grid.to_rows(),
        "startDir": int(level.start_dir),
        "par": level.par,
    }
    if level.metadata:
        data["metadata"] = dict(level.metadata)
    return data
