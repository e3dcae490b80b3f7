"""
Session Module - Manages play sessions.

A session represents one learner working through levels:
- Created when the learner opens the course
- Holds the current level and its run loop
- Tracks earned levels and unlocks
- Destroyed when the learner leaves

Sessions are EPHEMERAL: nothing is written to disk. Level results
are handed to a ProgressReporter, which may forward them elsewhere.
"""

from .manager import SessionManager, Session, SessionState, LevelLocked
from .run_loop import RunLoop, LoopState
from .progress import (
    ProgressTracker,
    ProgressReporter,
    InMemoryProgressReporter,
    LevelResult,
    solution_report,
    report_filename,
)

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
    "LevelLocked",
    "RunLoop",
    "LoopState",
    "ProgressTracker",
    "ProgressReporter",
    "InMemoryProgressReporter",
    "LevelResult",
    "solution_report",
    "report_filename",
]
