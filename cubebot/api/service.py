"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Manages sessions
3. Runs programs and reports every step
4. Generates new levels on request

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .schemas import (
    # Requests
    CreateSessionRequest,
    SelectLevelRequest,
    RunRequest,
    GenerateLevelRequest,
    # Responses
    ErrorResponse,
    LevelListResponse,
    SessionResponse,
    RunResponse,
    ProgressResponse,
    GenerateLevelResponse,
    # Shared
    LevelSummary,
    LevelDetail,
    SnapshotInfo,
    OutcomeInfo,
    PositionInfo,
    RunEventInfo,
    InstructionInfo,
    # Enums
    ErrorCode,
    SessionStatus,
    GenerationStatus,
)
from ..config import CUBEBOT_CACHE_DIR, EngineConfig
from ..engine_core.executor import RunEvent
from ..engine_core.grid import InvalidLevel
from ..engine_core.instruction import Instruction
from ..engine_core.state import RunOutcome, Snapshot
from ..level_generator import LevelGenerator
from ..level_schema import LevelSpec, level_from_dict
from ..levels import ORIENTATION_BADGE, ORIENTATION_LEVELS, get_level
from ..session import SessionManager, Session, LevelLocked, report_filename, solution_report


@dataclass
class APIService:
    """
    Main API service for the block editor client.

    Usage:
        service = APIService()

        # Create session
        session_response = service.create_session(CreateSessionRequest())

        # Run a program
        run_response = service.run_program(session_id, RunRequest(program=[...]))
    """
    session_manager: SessionManager = field(default_factory=SessionManager)
    level_generator: LevelGenerator = field(default_factory=LevelGenerator)

    # =========================================================================
    # Levels
    # =========================================================================

    def list_levels(self) -> LevelListResponse:
        """List the built-in orientation levels."""
        levels = [level_summary(level) for level in ORIENTATION_LEVELS]
        return LevelListResponse(levels=levels, count=len(levels))

    def get_level(self, level_id: str) -> LevelDetail | ErrorResponse:
        """Get a built-in level by id."""
        level = get_level(level_id)
        if level is None:
            return ErrorResponse(
                error=f"Level {level_id} not found",
                error_code=ErrorCode.LEVEL_NOT_FOUND,
            )
        return level_detail(level)

    def generate_level(self, request: GenerateLevelRequest) -> GenerateLevelResponse | ErrorResponse:
        """
        Design a level from a prompt.

        If a session is given, a successful level is added to it and selected.
        """
        session = None
        if request.session_id:
            session = self.session_manager.get_session(request.session_id)
            if not session:
                return _session_not_found(request.session_id)

        result = self.level_generator.generate(
            request.prompt, force_regenerate=request.force_regenerate
        )

        level_index = None
        if result.success and session is not None:
            try:
                level_index = session.add_level(result.level, select=True)
            except InvalidLevel as e:
                return ErrorResponse(
                    error=str(e),
                    error_code=ErrorCode.INVALID_LEVEL,
                    details={"errors": e.errors},
                )

        return GenerateLevelResponse(
            success=result.success,
            status=GenerationStatus(result.status.value),
            level=level_detail(result.level) if result.level else None,
            level_index=level_index,
            prompt_hash=result.prompt_hash,
            warnings=result.warnings,
            errors=result.errors,
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> SessionResponse | ErrorResponse:
        """
        Create a new play session.
        """
        levels = None
        if request.levels is not None:
            try:
                levels = [level_from_dict(doc) for doc in request.levels]
            except InvalidLevel as e:
                return ErrorResponse(
                    error=str(e),
                    error_code=ErrorCode.INVALID_LEVEL,
                    details={"errors": e.errors},
                )
            if not levels:
                return ErrorResponse(
                    error="A session needs at least one level",
                    error_code=ErrorCode.VALIDATION_ERROR,
                )

        try:
            session = self.session_manager.create_session(levels=levels)
        except InvalidLevel as e:
            # Raised when the first level has no usable start cell
            return ErrorResponse(
                error=str(e),
                error_code=ErrorCode.INVALID_LEVEL,
                details={"errors": e.errors},
            )

        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        """Get session status."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)
        return self._session_to_response(session)

    def end_session(self, session_id: str) -> bool:
        """End a session."""
        return self.session_manager.end_session(session_id)

    def list_sessions(self) -> list[str]:
        """List active session IDs."""
        return self.session_manager.list_active_sessions()

    def select_level(
        self,
        session_id: str,
        request: SelectLevelRequest,
    ) -> SessionResponse | ErrorResponse:
        """Switch a session to another level, respecting unlocks."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        try:
            session.select_level(request.level_index)
        except IndexError:
            return ErrorResponse(
                error=f"No level at index {request.level_index}",
                error_code=ErrorCode.LEVEL_NOT_FOUND,
            )
        except LevelLocked as e:
            return ErrorResponse(
                error=str(e),
                error_code=ErrorCode.LEVEL_LOCKED,
                details={"level_index": e.index},
            )
        except InvalidLevel as e:
            return ErrorResponse(
                error=str(e),
                error_code=ErrorCode.INVALID_LEVEL,
                details={"errors": e.errors},
            )

        return self._session_to_response(session)

    def reset(self, session_id: str) -> SessionResponse | ErrorResponse:
        """Abort any run and put the bot back on the start cell."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)
        session.reset()
        return self._session_to_response(session)

    def run_program(self, session_id: str, request: RunRequest) -> RunResponse | ErrorResponse:
        """
        Run a program on the session's current level without waiting.

        Every event is returned with its delay so the client can animate.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        program = to_program(request.program)
        result = session.run_instant(program)
        level = session.current_level

        return RunResponse(
            session_id=session_id,
            level_id=level.level_id,
            outcome=outcome_info(result.outcome),
            events=[run_event_info(event) for event in result.events],
            committed_count=result.committed_count,
            earned=session.progress.has_earned(level.level_id),
            orientation_complete=session.orientation_complete,
        )

    def get_progress(self, session_id: str) -> ProgressResponse | ErrorResponse:
        """Earned levels and unlocks."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        complete = session.orientation_complete
        return ProgressResponse(
            session_id=session_id,
            earned=list(session.progress.earned),
            unlocked=[i for i in range(len(session.levels)) if session.is_unlocked(i)],
            orientation_complete=complete,
            badge=ORIENTATION_BADGE if complete else None,
        )

    def get_solution(self, session_id: str) -> tuple[str, str] | ErrorResponse:
        """
        The learner's last program on the current level as an HTML page.

        Returns (filename, html).
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        level = session.current_level
        html = solution_report(level, session.last_program, outcome=session.last_outcome)
        return report_filename(level), html

    # =========================================================================
    # Conversion helpers
    # =========================================================================

    def _session_to_response(self, session: Session) -> SessionResponse:
        level = session.current_level
        return SessionResponse(
            session_id=session.session_id,
            status=SessionStatus(session.state.value),
            level_index=session.level_index,
            level=level_detail(
                level,
                locked=not session.is_unlocked(session.level_index),
                earned=session.progress.has_earned(level.level_id),
            ),
            snapshot=snapshot_info(session.run_loop.snapshot),
            last_outcome=outcome_info(session.last_outcome) if session.last_outcome else None,
            orientation_complete=session.orientation_complete,
            created_at=session.created_at,
        )


def _session_not_found(session_id: str) -> ErrorResponse:
    return ErrorResponse(
        error=f"Session {session_id} not found",
        error_code=ErrorCode.SESSION_NOT_FOUND,
    )


def to_program(blocks: list[InstructionInfo]) -> list[Instruction]:
    """Editor blocks to engine instructions. Blocks without an id get one."""
    return [
        Instruction(block.type, block.id) if block.id else Instruction(block.type)
        for block in blocks
    ]


def level_summary(level: LevelSpec, locked: bool = False, earned: bool = False) -> LevelSummary:
    return LevelSummary(
        level_id=level.level_id,
        name=level.name,
        description=level.description,
        width=level.grid.width,
        height=level.grid.height,
        goal_count=level.goal_count,
        par=level.par,
        locked=locked,
        earned=earned,
    )


def level_detail(level: LevelSpec, locked: bool = False, earned: bool = False) -> LevelDetail:
    return LevelDetail(
        **level_summary(level, locked=locked, earned=earned).model_dump(),
        grid=level.grid.to_rows(),
        start_dir=level.start_dir.name,
    )


def snapshot_info(snapshot: Snapshot) -> SnapshotInfo:
    return SnapshotInfo(
        position=PositionInfo(x=snapshot.position.x, z=snapshot.position.z),
        direction=snapshot.direction.name,
        is_jumping=snapshot.is_jumping,
        collected=sorted(p.key for p in snapshot.collected),
        active_index=snapshot.active_index,
        status=SessionStatus(snapshot.status.value),
        reason=snapshot.reason.value if snapshot.reason else None,
    )


def outcome_info(outcome: RunOutcome) -> OutcomeInfo:
    return OutcomeInfo(
        status=SessionStatus(outcome.status.value),
        reason=outcome.reason.value if outcome.reason else None,
        message=outcome.message,
    )


def run_event_info(event: RunEvent) -> RunEventInfo:
    return RunEventInfo(
        event_type=event.event_type.value,
        delay=event.delay,
        instruction_index=event.instruction_index,
        collected=event.collected.key if event.collected else None,
        snapshot=snapshot_info(event.snapshot),
    )


def default_service() -> APIService:
    """Service wired from the environment (timing and cache dir)."""
    return APIService(
        session_manager=SessionManager(config=EngineConfig.from_env()),
        level_generator=LevelGenerator(cache_dir=CUBEBOT_CACHE_DIR),
    )
