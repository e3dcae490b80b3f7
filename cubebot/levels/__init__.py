"""
Levels - The built-in Orientation course.

Six modules teaching, in order: moving forward, turning, walls,
jumping, combined maneuvers and a final exam.
"""

from .orientation import (
    ORIENTATION_LEVELS,
    ORIENTATION_BADGE,
    create_orientation_levels,
    get_level,
)

__all__ = [
    "ORIENTATION_LEVELS",
    "ORIENTATION_BADGE",
    "create_orientation_levels",
    "get_level",
]
