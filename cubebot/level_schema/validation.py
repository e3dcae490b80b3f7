"""
Level Validation - Checks a level before it may be played.

Validates that:
1. Required fields are present
2. The grid has exactly one start cell
3. par is sensible
4. The level can actually be solved (warning only)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from ..engine_core.grid import InvalidLevel
from .level_spec import LevelSpec
from .solver import solve, DEFAULT_MAX_LENGTH


class LevelValidationError(InvalidLevel):
    """Raised when level validation fails."""

    def __init__(self, errors: list[str]):
        super().__init__(errors)
        self.args = (f"Level validation failed with {len(errors)} error(s)",)


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    # Shortest solution length, None if unsolved or not checked
    solution_length: int | None = None


def validate_level(
    level: LevelSpec,
    check_solvable: bool = True,
    max_length: int = DEFAULT_MAX_LENGTH,
    raise_on_error: bool = False,
) -> ValidationResult:
    """
    Validate a level definition.

    Returns ValidationResult with errors and warnings.
    Raises LevelValidationError if raise_on_error=True and errors exist.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if level.level_id is None or level.level_id == "":
        errors.append("level_id is required")
    if not level.name:
        errors.append("name is required")
    if level.par < 0:
        errors.append("par must be >= 0")

    try:
        level.grid.find_start()
    except InvalidLevel as e:
        errors.extend(e.errors)

    if level.goal_count == 0:
        warnings.append("No goals defined - any surviving program wins")

    solution_length = None
    if check_solvable and not errors:
        solution = solve(level, max_length=max_length)
        if solution is None:
            warnings.append(f"No winning program of at most {max_length} blocks")
        else:
            solution_length = len(solution)
            if level.par and level.par < solution_length:
                warnings.append(
                    f"par {level.par} is below the shortest solution ({solution_length} blocks)"
                )

    if errors and raise_on_error:
        raise LevelValidationError(errors)

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        solution_length=solution_length,
    )
