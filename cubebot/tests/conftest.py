"""
Pytest fixtures for Cubebot tests.
"""

import pytest

from ..config import EngineConfig
from ..engine_core.grid import Grid
from ..engine_core.instruction import Direction
from ..level_schema import LevelSpec
from ..levels import create_orientation_levels
from ..session import SessionManager, InMemoryProgressReporter


@pytest.fixture
def corridor_level() -> LevelSpec:
    """Start at (1,1) facing East, one path cell, goal at (3,1)."""
    return LevelSpec(
        level_id="corridor",
        name="Corridor",
        start_dir=Direction.EAST,
        grid=Grid([
            [0, 0, 0, 0],
            [0, 2, 1, 3],
            [0, 0, 0, 0],
        ]),
    )


@pytest.fixture
def gap_level() -> LevelSpec:
    """A void between start and goal; only a jump gets across."""
    return LevelSpec(
        level_id="gap",
        name="Gap",
        start_dir=Direction.EAST,
        grid=Grid([
            [2, 0, 3],
        ]),
    )


@pytest.fixture
def wall_level() -> LevelSpec:
    """A wall right in front of the start, goal behind it."""
    return LevelSpec(
        level_id="wall",
        name="Wall",
        start_dir=Direction.EAST,
        grid=Grid([
            [2, 4, 3],
        ]),
    )


@pytest.fixture
def two_goal_level() -> LevelSpec:
    """Two goals in a row."""
    return LevelSpec(
        level_id="two-goals",
        name="Two Goals",
        start_dir=Direction.EAST,
        grid=Grid([
            [2, 3, 1, 3],
        ]),
    )


@pytest.fixture
def orientation_levels() -> list[LevelSpec]:
    return create_orientation_levels()


@pytest.fixture
def instant_config() -> EngineConfig:
    return EngineConfig.instant()


@pytest.fixture
def reporter() -> InMemoryProgressReporter:
    return InMemoryProgressReporter()


@pytest.fixture
def session_manager(instant_config, reporter) -> SessionManager:
    """Session manager with no waiting and an in-memory progress log."""
    return SessionManager(config=instant_config, reporter=reporter)
