"""
Grid Model - Static level representation.

The grid is write-once at level-load time:
- Rows are indexed by depth (z), columns by lateral offset (x)
- Every row has the same length
- Exactly one START cell, zero or more GOAL cells
- The engine only ever reads it
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Sequence


class CellType(IntEnum):
    """Cell codes as stored in level documents."""
    VOID = 0  # Hole - fatal
    PATH = 1
    START = 2  # Implies PATH
    GOAL = 3  # Implies PATH, collectible
    WALL = 4  # Fatal on entry

    @property
    def is_passable(self) -> bool:
        return self in {CellType.PATH, CellType.START, CellType.GOAL}


class InvalidLevel(ValueError):
    """Raised when a level's grid is malformed and must not be run."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__("; ".join(errors))


class OutOfBounds(IndexError):
    """Raised when a cell outside the grid extents is read."""

    def __init__(self, x: int, z: int):
        self.x = x
        self.z = z
        super().__init__(f"Cell ({x}, {z}) is outside the grid")


@dataclass(frozen=True, order=True)
class Position:
    """A grid cell coordinate. Vertical height is a rendering concern."""
    x: int
    z: int

    @property
    def key(self) -> str:
        """Coordinate key used by renderers, e.g. "3,1"."""
        return f"{self.x},{self.z}"

    @classmethod
    def from_key(cls, key: str) -> Position:
        x, z = key.split(",")
        return cls(int(x), int(z))

    def shifted(self, dx: int, dz: int) -> Position:
        return Position(self.x + dx, self.z + dz)


def _cell_type(code) -> CellType:
    """Integers and digit strings only; floats and booleans are rejected."""
    if isinstance(code, bool):
        raise TypeError(f"Not a cell code: {code!r}")
    if isinstance(code, str) and code.strip().isdigit():
        code = int(code)
    if not isinstance(code, int):
        raise TypeError(f"Not a cell code: {code!r}")
    return CellType(code)


class Grid:
    """
    Immutable matrix of cell types.

    Construction checks shape and cell codes. START uniqueness is checked
    by find_start() so that a level can still be inspected and reported on.
    """

    def __init__(self, rows: Sequence[Sequence[int]]):
        errors: list[str] = []
        if not rows or not rows[0]:
            raise InvalidLevel("Grid must have at least one row and one column")

        width = len(rows[0])
        cells: list[tuple[CellType, ...]] = []
        for z, row in enumerate(rows):
            if len(row) != width:
                errors.append(f"Row {z} has {len(row)} cells, expected {width}")
                continue
            parsed = []
            for x, code in enumerate(row):
                try:
                    parsed.append(_cell_type(code))
                except (TypeError, ValueError):
                    errors.append(f"Unknown cell code {code!r} at ({x}, {z})")
                    parsed.append(CellType.VOID)
            cells.append(tuple(parsed))

        if errors:
            raise InvalidLevel(errors)

        self._cells: tuple[tuple[CellType, ...], ...] = tuple(cells)
        self.width = width
        self.height = len(cells)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return False
        return self._cells == other._cells

    def __hash__(self) -> int:
        return hash(self._cells)

    def __repr__(self) -> str:
        return f"Grid({self.to_rows()!r})"

    def in_bounds(self, x: int, z: int) -> bool:
        return 0 <= x < self.width and 0 <= z < self.height

    def cell_at(self, x: int, z: int) -> CellType:
        """Get the cell type at (x, z). Raises OutOfBounds."""
        if not self.in_bounds(x, z):
            raise OutOfBounds(x, z)
        return self._cells[z][x]

    def cell_at_position(self, pos: Position) -> CellType:
        return self.cell_at(pos.x, pos.z)

    def cells(self) -> Iterator[tuple[Position, CellType]]:
        """Iterate over every cell in row-major order."""
        for z, row in enumerate(self._cells):
            for x, cell in enumerate(row):
                yield Position(x, z), cell

    def positions_of(self, cell_type: CellType) -> list[Position]:
        return [pos for pos, cell in self.cells() if cell == cell_type]

    def find_start(self) -> Position:
        """Locate the single START cell. Raises InvalidLevel otherwise."""
        starts = self.positions_of(CellType.START)
        if not starts:
            raise InvalidLevel("Level has no start cell")
        if len(starts) > 1:
            keys = ", ".join(p.key for p in starts)
            raise InvalidLevel(f"Level has {len(starts)} start cells: {keys}")
        return starts[0]

    def count_goals(self) -> int:
        return len(self.positions_of(CellType.GOAL))

    def to_rows(self) -> list[list[int]]:
        """Plain integer rows, as stored in level documents."""
        return [[int(cell) for cell in row] for row in self._cells]
