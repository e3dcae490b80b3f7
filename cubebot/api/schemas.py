"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between the block editor client
and the engine. All responses include explicit types for OpenAPI schema
generation.

Error Codes:
- INVALID_LEVEL: Level document is malformed or cannot be played
- LEVEL_NOT_FOUND: No level with that id or index
- LEVEL_LOCKED: The previous module has not been completed yet
- SESSION_NOT_FOUND: Session does not exist or has expired
- GENERATION_FAILED: The level designer could not produce a playable level
"""

from enum import Enum
from typing import Optional, Any, Union
from pydantic import BaseModel, Field

from ..engine_core.instruction import InstructionType


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    IDLE = "idle"
    RUNNING = "running"
    WON = "won"
    LOST = "lost"
    ENDED = "ended"


class GenerationStatus(str, Enum):
    """Level generation status."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CACHED = "cached"


class ErrorCode(str, Enum):
    """Structured error codes."""
    INVALID_LEVEL = "INVALID_LEVEL"
    LEVEL_NOT_FOUND = "LEVEL_NOT_FOUND"
    LEVEL_LOCKED = "LEVEL_LOCKED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    GENERATION_FAILED = "GENERATION_FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class PositionInfo(BaseModel):
    """A grid cell."""
    x: int
    z: int


class SnapshotInfo(BaseModel):
    """What the renderer shows at one point of a run."""
    position: PositionInfo
    direction: str = Field(description="NORTH, EAST, SOUTH or WEST")
    is_jumping: bool = False
    collected: list[str] = Field(
        default_factory=list, description="Collected goal keys, e.g. '3,1'"
    )
    active_index: Optional[int] = Field(None, description="Highlighted block")
    status: SessionStatus
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class OutcomeInfo(BaseModel):
    """Result of a run."""
    status: SessionStatus
    reason: Optional[str] = Field(
        None, description="FellOffWorld, FellIntoVoid, HitWall or GoalNotReached"
    )
    message: str = ""


class RunEventInfo(BaseModel):
    """One step of a run, with the pause to wait before showing it."""
    event_type: str = Field(description="reset, commit, collect, failed, finished")
    delay: float = Field(0.0, description="Seconds to wait before showing this snapshot")
    instruction_index: Optional[int] = None
    collected: Optional[str] = Field(None, description="Goal collected by this event")
    snapshot: SnapshotInfo


class InstructionInfo(BaseModel):
    """One block in a program, as placed in the editor."""
    id: Optional[str] = Field(None, description="Editor block id, opaque to the engine")
    type: InstructionType


class LevelSummary(BaseModel):
    """Level information for a level picker."""
    level_id: Union[int, str]
    name: str
    description: str = ""
    width: int
    height: int
    goal_count: int
    par: int = 0
    locked: bool = False
    earned: bool = False


class LevelDetail(LevelSummary):
    """Full level information, including the grid."""
    grid: list[list[int]] = Field(
        description="Rows of cell codes: 0 void, 1 path, 2 start, 3 goal, 4 wall"
    )
    start_dir: str


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to create a play session."""
    levels: Optional[list[dict[str, Any]]] = Field(
        None, description="Custom level documents; defaults to the orientation course"
    )


class SelectLevelRequest(BaseModel):
    """Request to switch the session to another level."""
    level_index: int = Field(ge=0)


class RunRequest(BaseModel):
    """A program to run on the session's current level."""
    program: list[InstructionInfo] = Field(default_factory=list)


class GenerateLevelRequest(BaseModel):
    """Request to design a new level from a prompt."""
    prompt: str = Field(min_length=1, description="What the level should look like")
    session_id: Optional[str] = Field(
        None, description="Add the level to this session and select it"
    )
    force_regenerate: bool = False


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None
    api_version: str = "v1"


class LevelListResponse(BaseModel):
    """Response listing levels."""
    levels: list[LevelSummary]
    count: int
    api_version: str = "v1"


class SessionResponse(BaseModel):
    """Response with session information."""
    session_id: str
    status: SessionStatus
    level_index: int
    level: LevelDetail
    snapshot: SnapshotInfo
    last_outcome: Optional[OutcomeInfo] = None
    orientation_complete: bool = False
    created_at: float
    api_version: str = "v1"


class RunResponse(BaseModel):
    """Every step of a finished run plus its outcome."""
    session_id: str
    level_id: Union[int, str]
    outcome: OutcomeInfo
    events: list[RunEventInfo]
    committed_count: int = 0
    earned: bool = False
    orientation_complete: bool = False
    api_version: str = "v1"


class ProgressResponse(BaseModel):
    """Earned levels and unlocks for a session."""
    session_id: str
    earned: list[Union[int, str]]
    unlocked: list[int] = Field(description="Indices of playable levels")
    orientation_complete: bool = False
    badge: Optional[str] = None
    api_version: str = "v1"


class GenerateLevelResponse(BaseModel):
    """Response after generating a level."""
    success: bool
    status: GenerationStatus
    level: Optional[LevelDetail] = None
    level_index: Optional[int] = Field(None, description="Index in the session, if added")
    prompt_hash: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    """Response listing active sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Response after ending a session."""
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
