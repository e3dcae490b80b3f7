"""Level schema - level definitions, validation and solving."""

from .level_spec import LevelSpec, level_from_dict, level_to_dict
from .validation import validate_level, LevelValidationError, ValidationResult
from .solver import solve

__all__ = [
    "LevelSpec",
    "level_from_dict",
    "level_to_dict",
    "validate_level",
    "LevelValidationError",
    "ValidationResult",
    "solve",
]
