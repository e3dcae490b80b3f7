"""
FastAPI Application - REST API for the block editor client.

Endpoints:
    GET    /api/v1/levels                       List built-in levels
    GET    /api/v1/levels/{id}                  Get a built-in level
    POST   /api/v1/levels/generate              Design a level from a prompt
    POST   /api/v1/sessions                     Create play session
    GET    /api/v1/sessions                     List active sessions
    GET    /api/v1/sessions/{id}                Get session status
    DELETE /api/v1/sessions/{id}                End session
    POST   /api/v1/sessions/{id}/level          Select a level
    POST   /api/v1/sessions/{id}/reset          Reset the bot
    POST   /api/v1/sessions/{id}/run            Run a program, get every step
    GET    /api/v1/sessions/{id}/progress       Earned levels and unlocks
    GET    /api/v1/sessions/{id}/solution       Download the last program as HTML
    WS     /api/v1/sessions/{id}/ws             Timed runs, streamed live

Run Flow:
    1. POST /run executes instantly and returns every event with the
       delay to wait before showing it; the client animates on its own
    2. Or, over the WebSocket, send {"type": "run", "payload": {"program": [...]}}
       and receive each snapshot as the server publishes it

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Optional, Union
import asyncio
import contextlib
import json
import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import ValidationError

from .. import __version__
from ..config import ALLOWED_ORIGINS
from ..engine_core.executor import RunEvent
from ..levels import ORIENTATION_BADGE
from .service import (
    APIService,
    default_service,
    outcome_info,
    run_event_info,
    to_program,
)
from .schemas import (
    # Request models
    CreateSessionRequest,
    SelectLevelRequest,
    RunRequest,
    GenerateLevelRequest,
    # Response models
    ErrorResponse,
    LevelListResponse,
    LevelDetail,
    SessionResponse,
    RunResponse,
    ProgressResponse,
    GenerateLevelResponse,
    SessionListResponse,
    EndSessionResponse,
    HealthResponse,
    # Enums
    ErrorCode,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_LEVEL: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.LEVEL_LOCKED: 403,
    ErrorCode.LEVEL_NOT_FOUND: 404,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.GENERATION_FAILED: 422,
    ErrorCode.INTERNAL_ERROR: 500,
}


def create_app(service: Optional[APIService] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates one from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="Cubebot API",
        description="""
Qbo Academy - Block programming game engine.

## Run Flow

1. Create a session with `POST /api/v1/sessions`
2. Build a program of `MOVE`, `JUMP`, `TURN_LEFT` and `TURN_RIGHT` blocks
3. `POST /run` returns every snapshot with its delay, or use the WebSocket
   for a run timed by the server

## Error Codes

| Code | Description |
|------|-------------|
| `INVALID_LEVEL` | Level document is malformed |
| `LEVEL_NOT_FOUND` | No such level |
| `LEVEL_LOCKED` | Previous module not completed |
| `SESSION_NOT_FOUND` | Session does not exist |
| `GENERATION_FAILED` | No playable level could be designed |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # CORS for the web client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service or default_service()

    # Outgoing message queues of open WebSockets, per session
    ws_connections: dict[str, list[asyncio.Queue]] = {}
    app.state.ws_connections = ws_connections

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code or ERROR_STATUS.get(error_code, 400),
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def from_error(response: ErrorResponse) -> JSONResponse:
        return make_error_response(
            response.error_code, response.error, details=response.details
        )

    def broadcast_to_session(session_id: str, message: dict):
        """Queue a message for every WebSocket open on a session."""
        for outbox in ws_connections.get(session_id, []):
            outbox.put_nowait(message)

    def state_update(response: SessionResponse) -> dict:
        return {"type": "state_update", "payload": response.model_dump(mode="json")}

    # =========================================================================
    # Level Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/levels",
        response_model=LevelListResponse,
        tags=["Levels"],
        summary="List the orientation levels",
    )
    async def list_levels() -> LevelListResponse:
        """List the built-in levels in play order."""
        return api_service.list_levels()

    @app.get(
        "/api/v1/levels/{level_id}",
        response_model=LevelDetail,
        responses={404: {"model": ErrorResponse}},
        tags=["Levels"],
        summary="Get a built-in level",
    )
    async def get_level(level_id: str) -> Union[LevelDetail, JSONResponse]:
        """Get a built-in level, including its grid."""
        response = api_service.get_level(level_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.post(
        "/api/v1/levels/generate",
        response_model=GenerateLevelResponse,
        responses={
            404: {"model": ErrorResponse, "description": "Session not found"},
            422: {"model": ErrorResponse, "description": "No playable level"},
        },
        tags=["Levels"],
        summary="Design a new level from a prompt",
    )
    async def generate_level(
        body: GenerateLevelRequest,
    ) -> Union[GenerateLevelResponse, JSONResponse]:
        """
        Design a new level from a free-text prompt.

        Results are cached by prompt hash. If `session_id` is given, the
        level is added to that session and selected.
        """
        # Blocking: model call and solvability search
        response = await run_in_threadpool(api_service.generate_level, body)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        if not response.success:
            return make_error_response(
                ErrorCode.GENERATION_FAILED,
                "; ".join(response.errors) or "Level generation failed",
                details={"errors": response.errors, "prompt_hash": response.prompt_hash},
            )

        if body.session_id:
            session_response = api_service.get_session(body.session_id)
            if not isinstance(session_response, ErrorResponse):
                broadcast_to_session(body.session_id, state_update(session_response))
        return response

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid level documents"},
        },
        tags=["Sessions"],
        summary="Create a new play session",
    )
    async def create_session(
        body: Optional[CreateSessionRequest] = None,
    ) -> Union[SessionResponse, JSONResponse]:
        """
        Create a new play session.

        Without a body the session plays the orientation course.
        """
        response = api_service.create_session(body or CreateSessionRequest())
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        """List all active session IDs."""
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        """Get the current level and bot snapshot of a session."""
        response = api_service.get_session(session_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a play session",
    )
    async def end_session(session_id: str) -> EndSessionResponse:
        """End a play session and release resources."""
        success = api_service.end_session(session_id)
        return EndSessionResponse(success=success, session_id=session_id)

    # =========================================================================
    # Play Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/level",
        response_model=SessionResponse,
        responses={
            403: {"model": ErrorResponse, "description": "Level locked"},
            404: {"model": ErrorResponse, "description": "Session or level not found"},
        },
        tags=["Play"],
        summary="Select a level",
    )
    async def select_level(
        session_id: str,
        body: SelectLevelRequest,
    ) -> Union[SessionResponse, JSONResponse]:
        """Switch to another level. A level opens once the one before it is won."""
        response = api_service.select_level(session_id, body)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        broadcast_to_session(session_id, state_update(response))
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/reset",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Play"],
        summary="Reset the bot to the start",
    )
    async def reset(session_id: str) -> Union[SessionResponse, JSONResponse]:
        """Abort any run in flight and put the bot back on the start cell."""
        response = api_service.reset(session_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/run",
        response_model=RunResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Play"],
        summary="Run a program",
    )
    async def run_program(
        session_id: str,
        body: RunRequest,
    ) -> Union[RunResponse, JSONResponse]:
        """
        Run a program to completion and return every step.

        Each event carries the `delay` (seconds) to wait before showing
        its snapshot, so the client can replay the run at normal speed.

        **Request Body:**
        ```json
        {"program": [{"id": "b1", "type": "MOVE"}, {"id": "b2", "type": "JUMP"}]}
        ```
        """
        response = api_service.run_program(session_id, body)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.get(
        "/api/v1/sessions/{session_id}/progress",
        response_model=ProgressResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Play"],
        summary="Get earned levels and unlocks",
    )
    async def get_progress(session_id: str) -> Union[ProgressResponse, JSONResponse]:
        """Earned levels, unlocked indices and the Orientation badge."""
        response = api_service.get_progress(session_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.get(
        "/api/v1/sessions/{session_id}/solution",
        response_class=HTMLResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Play"],
        summary="Download the last program",
    )
    async def get_solution(session_id: str):
        """
        The last program run on the current level as a standalone HTML
        page, served as a file download.
        """
        response = api_service.get_solution(session_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        filename, html = response
        return HTMLResponse(
            content=html,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket for timed runs.

        Messages from server:
        - state_update: Session status (on connect and on level change)
        - run_event: One snapshot, published when it is due
        - outcome: The run is over
        - error: Error occurred

        Messages from client:
        - run: {"type": "run", "payload": {"program": [...]}}
        - reset: Abort the run and go back to the start
        - ping: Keep-alive
        """
        await websocket.accept()

        session = api_service.session_manager.get_session(session_id)
        if not session:
            await websocket.send_json({
                "type": "error",
                "payload": {
                    "error_code": ErrorCode.SESSION_NOT_FOUND.value,
                    "message": f"Session {session_id} not found",
                },
            })
            await websocket.close(code=4404)
            return

        outbox: asyncio.Queue = asyncio.Queue()

        def on_run_event(event: RunEvent):
            outbox.put_nowait({
                "type": "run_event",
                "payload": run_event_info(event).model_dump(mode="json"),
            })
            if event.is_terminal:
                outcome = event.snapshot.outcome
                payload = outcome_info(outcome).model_dump(mode="json")
                payload["earned"] = session.progress.has_earned(session.current_level.level_id)
                payload["badge"] = ORIENTATION_BADGE if session.orientation_complete else None
                outbox.put_nowait({"type": "outcome", "payload": payload})

        async def pump():
            while True:
                message = await outbox.get()
                await websocket.send_json(message)

        unsubscribe = session.subscribe(on_run_event)
        ws_connections.setdefault(session_id, []).append(outbox)
        sender = asyncio.create_task(pump())

        try:
            # Send initial state
            response = api_service.get_session(session_id)
            if not isinstance(response, ErrorResponse):
                outbox.put_nowait(state_update(response))

            # Listen for messages
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    outbox.put_nowait({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
                    continue

                message_type = message.get("type") if isinstance(message, dict) else None
                if message_type == "ping":
                    outbox.put_nowait({"type": "pong"})
                elif message_type == "reset":
                    session.reset()
                elif message_type == "run":
                    try:
                        request = RunRequest.model_validate(message.get("payload") or {})
                    except ValidationError as e:
                        outbox.put_nowait({
                            "type": "error",
                            "payload": {
                                "error_code": ErrorCode.VALIDATION_ERROR.value,
                                "message": str(e),
                            },
                        })
                        continue
                    session.start_run(to_program(request.program))
                else:
                    outbox.put_nowait({
                        "type": "error",
                        "payload": {"message": f"Unknown message type: {message_type}"},
                    })

        except WebSocketDisconnect:
            logger.debug("WebSocket closed for session %s", session_id)
        finally:
            unsubscribe()
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await sender
            outboxes = ws_connections.get(session_id, [])
            if outbox in outboxes:
                outboxes.remove(outbox)
            if not outboxes:
                ws_connections.pop(session_id, None)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="cubebot-engine",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Cubebot API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn cubebot.api.app:app
app = create_app()
