"""
Progress - Level unlocks, earned badges and progress reporting.

Unlock rule: the first level is always open; every other level opens
once the level before it has been won.

Reporting to a remote progress log is best effort. A reporter that
fails is logged and ignored so the learner can keep playing offline.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import Any, Sequence
import logging

from ..engine_core.instruction import Instruction
from ..engine_core.state import RunOutcome
from ..level_schema import LevelSpec

logger = logging.getLogger(__name__)


@dataclass
class LevelResult:
    """A won level, as sent to the progress log."""
    level_id: int | str
    level_name: str
    solution: list[dict[str, str]]
    timestamp: str

    @classmethod
    def create(cls, level: LevelSpec, program: Sequence[Instruction]) -> LevelResult:
        return cls(
            level_id=level.level_id,
            level_name=level.name,
            solution=[
                {"id": i.instruction_id, "type": i.instruction_type.value} for i in program
            ],
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "levelId": self.level_id,
            "levelName": self.level_name,
            "solution": self.solution,
            "timestamp": self.timestamp,
        }


class ProgressReporter(ABC):
    """
    Abstract sink for level results.

    Implementations may talk to a remote service and may fail;
    callers never let a failure reach the game.
    """

    @abstractmethod
    def report(self, result: LevelResult) -> None:
        """Record a level result. May raise."""
        pass


class InMemoryProgressReporter(ProgressReporter):
    """Keeps results in a list. Default reporter."""

    def __init__(self):
        self.results: list[LevelResult] = []

    def report(self, result: LevelResult) -> None:
        self.results.append(result)


@dataclass
class ProgressTracker:
    """
    Tracks which levels a learner has earned.

    Earned ids are kept in the order they were won.
    """
    reporter: ProgressReporter | None = None
    earned: list[int | str] = field(default_factory=list)

    def has_earned(self, level_id: int | str) -> bool:
        return level_id in self.earned

    def is_unlocked(self, levels: Sequence[LevelSpec], index: int) -> bool:
        """Whether the level at index may be played."""
        if index < 0 or index >= len(levels):
            return False
        if index == 0:
            return True
        return self.has_earned(levels[index - 1].level_id)

    def orientation_complete(self, levels: Sequence[LevelSpec], last_index: int) -> bool:
        """Whether the final level of the course has been won."""
        if not levels or not 0 <= last_index < len(levels):
            return False
        return self.has_earned(levels[last_index].level_id)

    def record_win(self, level: LevelSpec, program: Sequence[Instruction]) -> bool:
        """
        Mark a level as earned and report it.

        Returns False if the reporter failed; the win is kept either way.
        """
        if not self.has_earned(level.level_id):
            self.earned.append(level.level_id)

        if self.reporter is None:
            return True

        result = LevelResult.create(level, program)
        try:
            self.reporter.report(result)
        except Exception as e:
            logger.warning("Failed to save progress for level %s: %s", level.level_id, e)
            return False
        return True


def solution_report(
    level: LevelSpec,
    program: Sequence[Instruction],
    outcome: RunOutcome | None = None,
    timestamp: datetime | None = None,
) -> str:
    """
    Render a learner's program as a standalone HTML page.
    """
    timestamp = timestamp or datetime.now()
    status = "SUCCESS" if outcome and outcome.won else "IN PROGRESS"
    blocks = "".join(
        f'<div class="block {i.instruction_type.value}">'
        f"{n}. {i.instruction_type.value.replace('_', ' ')}</div>"
        for n, i in enumerate(program, start=1)
    )
    name = escape(level.name)
    stamp = escape(timestamp.strftime("%Y-%m-%d %H:%M:%S"))
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>Qbo Academy - {name}</title>
  <style>
    body {{ font-family: sans-serif; padding: 2rem; background: #f8fafc; color: #1e3a8a; }}
    h1 {{ color: #2563eb; }}
    .block {{ padding: 10px; margin: 5px; color: white; border-radius: 5px; font-weight: bold; width: fit-content; }}
    .MOVE {{ background-color: #2563eb; }}
    .TURN_LEFT {{ background-color: #a855f7; }}
    .TURN_RIGHT {{ background-color: #f97316; }}
    .JUMP {{ background-color: #84cc16; }}
  </style>
</head>
<body>
  <h1>Level Solved: {name}</h1>
  <p><strong>Status:</strong> {status}</p>
  <p><strong>Timestamp:</strong> {stamp}</p>
  <hr/>
  <h2>Your Code:</h2>
  <div>
    {blocks}
  </div>
</body>
</html>
"""


def report_filename(level: LevelSpec) -> str:
    """File name for a downloaded solution, e.g. qbo-module-1:-forward-motion.html."""
    return f"qbo-{'-'.join(level.name.split()).lower()}.html"
