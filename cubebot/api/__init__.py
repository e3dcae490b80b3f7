"""
API Module - Block editor client interface.

Exposes the engine via REST and WebSocket.
The client:
1. Lists levels and creates a play session
2. Selects an unlocked level
3. Runs programs and animates the returned snapshots
4. Asks for generated levels when the course is done

All state is session-scoped. No persistent user accounts required.
"""

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
    InstructionInfo,
    ErrorCode,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "SelectLevelRequest",
    "RunRequest",
    "GenerateLevelRequest",
    # Responses
    "ErrorResponse",
    "LevelListResponse",
    "SessionResponse",
    "RunResponse",
    "ProgressResponse",
    "GenerateLevelResponse",
    # Shared
    "LevelSummary",
    "LevelDetail",
    "SnapshotInfo",
    "OutcomeInfo",
    "InstructionInfo",
    "ErrorCode",
    # Service
    "APIService",
    "create_app",
]
