"""
Session Manager - Creates and manages play sessions.

LIFECYCLE:
1. Learner opens the course -> session created with the built-in levels
2. Learner picks an unlocked level -> a RunLoop is built for it
3. Learner runs programs; every run starts from a fresh reset
4. A WON run earns the level and unlocks the next one
5. Generated levels are appended to the session's level list
6. Session ends -> removed from memory

Sessions are in-memory only. Progress leaves the process only through
the ProgressReporter.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence
import logging
import time
import uuid

from ..config import EngineConfig
from ..engine_core.executor import RunEvent, RunResult
from ..engine_core.instruction import Instruction
from ..engine_core.state import RunOutcome, RunStatus
from ..level_schema import LevelSpec, validate_level
from ..levels import create_orientation_levels
from .progress import ProgressReporter, ProgressTracker
from .run_loop import RunLoop

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a play session."""
    IDLE = "idle"  # Level loaded, bot at start
    RUNNING = "running"  # Program executing
    WON = "won"
    LOST = "lost"
    ENDED = "ended"  # Session closed


class LevelLocked(Exception):
    """Raised when selecting a level whose predecessor is not yet won."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Level {index + 1} is locked - complete the previous module first")


@dataclass
class Session:
    """
    A play session.

    Contains:
    - The level list (built-in course plus generated levels)
    - The current level and its RunLoop
    - Progress (earned levels)
    - The last program and outcome
    """
    session_id: str
    levels: list[LevelSpec]
    created_at: float
    config: EngineConfig = field(default_factory=EngineConfig)
    progress: ProgressTracker = field(default_factory=ProgressTracker)

    # Built-in levels at the head of `levels`
    course_length: int = 0

    level_index: int = 0
    run_loop: RunLoop | None = None
    ended: bool = False

    last_program: list[Instruction] = field(default_factory=list)
    last_outcome: RunOutcome | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    # Observers that follow the session across level changes
    _observers: list[Callable[[RunEvent], Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if self.run_loop is None:
            self._load_level(self.level_index)

    @property
    def current_level(self) -> LevelSpec:
        return self.levels[self.level_index]

    @property
    def state(self) -> SessionState:
        if self.ended:
            return SessionState.ENDED
        if self.run_loop.is_running:
            return SessionState.RUNNING
        status = self.run_loop.snapshot.status
        if status == RunStatus.WON:
            return SessionState.WON
        if status == RunStatus.LOST:
            return SessionState.LOST
        return SessionState.IDLE

    @property
    def orientation_complete(self) -> bool:
        return self.progress.orientation_complete(self.levels, self.course_length - 1)

    def is_active(self) -> bool:
        return not self.ended

    def is_unlocked(self, index: int) -> bool:
        return self.progress.is_unlocked(self.levels, index)

    def select_level(self, index: int) -> LevelSpec:
        """
        Switch to another level. Raises LevelLocked or IndexError.

        Any run in flight on the old level is abandoned.
        """
        if index < 0 or index >= len(self.levels):
            raise IndexError(f"No level at index {index}")
        if not self.is_unlocked(index):
            raise LevelLocked(index)
        self._load_level(index)
        return self.current_level

    def next_level_index(self) -> int:
        """Where the 'next module' button goes: the next level, or back to the start."""
        if self.level_index >= len(self.levels) - 1:
            return 0
        return self.level_index + 1

    def add_level(self, level: LevelSpec, select: bool = True) -> int:
        """
        Append a level (e.g. a generated one). Raises InvalidLevel.

        Generated levels are playable straight away.
        """
        validate_level(level, check_solvable=False, raise_on_error=True)
        self.levels.append(level)
        index = len(self.levels) - 1
        if select:
            self._load_level(index)
        return index

    def subscribe(self, observer: Callable[[RunEvent], Any]) -> Callable[[], None]:
        """
        Follow every run event of this session, whichever level is loaded.

        Returns a function that unregisters the observer.
        """
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def reset(self):
        """Back to the start of the current level."""
        return self.run_loop.reset()

    def start_run(self, program: Sequence[Instruction]):
        """Start a timed run. Must be called from a running event loop."""
        self.last_program = list(program)
        self.last_outcome = None
        return self.run_loop.start(self.last_program)

    async def run(self, program: Sequence[Instruction]) -> RunOutcome | None:
        """Run a program at animation speed and wait for its outcome."""
        return await self.start_run(program)

    def run_instant(self, program: Sequence[Instruction]) -> RunResult:
        """Run a program without waiting; returns every event."""
        self.last_program = list(program)
        self.last_outcome = None
        return self.run_loop.run_instant(self.last_program)

    def _load_level(self, index: int):
        # Raises InvalidLevel before anything changes
        run_loop = RunLoop(self.levels[index], self.config)
        if self.run_loop is not None:
            # Stale tasks of the old loop stop without publishing
            self.run_loop.cancel()
        self.level_index = index
        self.run_loop = run_loop
        self.run_loop.subscribe(self._on_run_event)
        self.last_program = []
        self.last_outcome = None
        self.run_loop.reset()

    def _on_run_event(self, event: RunEvent):
        if event.is_terminal:
            outcome = event.snapshot.outcome
            self.last_outcome = outcome
            if outcome.won:
                self.progress.record_win(self.current_level, self.last_program)
            logger.info(
                "Session %s level %s: %s",
                self.session_id, self.current_level.level_id, outcome.message,
            )

        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.warning("Session observer %r failed", observer, exc_info=True)


class SessionManager:
    """
    Manages play sessions.

    Responsibilities:
    - Create sessions with the built-in course
    - Track active sessions
    - Clean up ended or stale sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        reporter: ProgressReporter | None = None,
    ):
        self.config = config or EngineConfig()
        self.reporter = reporter
        self._sessions: dict[str, Session] = {}

    def create_session(
        self,
        levels: list[LevelSpec] | None = None,
        config: EngineConfig | None = None,
    ) -> Session:
        """
        Create a new play session.

        Args:
            levels: Level list (defaults to the orientation course)
            config: Timing override for this session

        Returns:
            New Session at the first level
        """
        course = list(levels) if levels is not None else create_orientation_levels()
        if not course:
            raise ValueError("A session needs at least one level")

        session = Session(
            session_id=str(uuid.uuid4()),
            levels=course,
            created_at=time.time(),
            config=config or self.config,
            progress=ProgressTracker(reporter=self.reporter),
            course_length=len(course),
        )
        self._sessions[session.session_id] = session
        logger.info("Created session %s with %d level(s)", session.session_id, len(course))
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str) -> bool:
        """
        End a session and remove it from memory.

        Returns False if the session did not exist.
        """
        session = self._sessions.pop(session_id, None)
        if not session:
            return False
        session.run_loop.cancel()
        session.ended = True
        return True

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> int:
        """
        End sessions older than max_age that are not running.

        Returns the number of sessions removed.
        """
        current_time = time.time()
        to_remove = [
            session_id
            for session_id, session in self._sessions.items()
            if current_time - session.created_at > max_age_seconds
            and session.state != SessionState.RUNNING
        ]
        for session_id in to_remove:
            self.end_session(session_id)
        return len(to_remove)
