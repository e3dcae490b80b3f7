"""
Tests for API layer.

Tests:
- API service methods
- Session lifecycle via API
- Error handling
- HTTP and WebSocket endpoints
"""

import asyncio
import json
import threading

import httpx
import pytest
from fastapi.testclient import TestClient

from ..api.app import create_app
from ..api.schemas import (
    CreateSessionRequest,
    ErrorCode,
    ErrorResponse,
    GenerateLevelRequest,
    InstructionInfo,
    RunRequest,
    SelectLevelRequest,
    SessionStatus,
)
from ..api.service import APIService, to_program
from ..config import EngineConfig
from ..engine_core.instruction import InstructionType
from ..level_generator import LevelDesignClient, LevelGenerator
from ..session import SessionManager

GENERATED_LEVEL = {
    "name": "Sky Bridge",
    "description": "Cross the gap.",
    "grid": [[0, 0, 0, 0, 0], [0, 2, 1, 0, 3], [0, 0, 0, 0, 0]],
    "startDir": 1,
    "par": 2,
}

MODULE_1 = [{"id": "b1", "type": "MOVE"}, {"id": "b2", "type": "JUMP"}]


class ScriptedClient(LevelDesignClient):
    def __init__(self, response):
        self.response = response

    def generate(self, prompt, system_instruction, response_schema):
        return self.response


def make_service(tmp_path, response=json.dumps(GENERATED_LEVEL)) -> APIService:
    return APIService(
        session_manager=SessionManager(config=EngineConfig.instant()),
        level_generator=LevelGenerator(
            llm_client=ScriptedClient(response), cache_dir=str(tmp_path / "cache")
        ),
    )


def run_request(blocks) -> RunRequest:
    return RunRequest.model_validate({"program": blocks})


class TestAPIService:
    """Tests for APIService."""

    @pytest.fixture
    def service(self, tmp_path):
        """Create a fresh API service."""
        return make_service(tmp_path)

    def test_list_levels(self, service):
        response = service.list_levels()

        assert response.count == 6
        assert response.levels[0].name == "Module 1: Forward Motion"

    def test_get_level(self, service):
        response = service.get_level("4")

        assert response.name == "Module 4: Jumping"
        assert response.start_dir == "EAST"
        assert response.grid[1] == [0, 2, 1, 0, 1, 3]

    def test_get_missing_level(self, service):
        response = service.get_level("99")

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.LEVEL_NOT_FOUND

    def test_create_session(self, service):
        response = service.create_session(CreateSessionRequest())

        assert response.session_id is not None
        assert response.status == SessionStatus.IDLE
        assert response.level_index == 0
        assert response.level.level_id == 1
        assert response.snapshot.position.x == 1
        assert response.snapshot.position.z == 1

    def test_create_session_with_custom_levels(self, service):
        doc = dict(GENERATED_LEVEL, id="custom")
        response = service.create_session(CreateSessionRequest(levels=[doc]))

        assert response.level.level_id == "custom"

    def test_create_session_with_bad_level(self, service):
        response = service.create_session(CreateSessionRequest(levels=[{"name": "x"}]))

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.INVALID_LEVEL
        assert response.details["errors"]

    def test_create_session_with_bad_metadata(self, service):
        doc = dict(GENERATED_LEVEL, id="custom", metadata="oops")

        response = service.create_session(CreateSessionRequest(levels=[doc]))

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.INVALID_LEVEL

    def test_solution_after_win(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        service.run_program(session_id, run_request(MODULE_1))

        filename, html = service.get_solution(session_id)

        assert filename == "qbo-module-1:-forward-motion.html"
        assert "SUCCESS" in html
        assert "1. MOVE" in html
        assert "2. JUMP" in html

    def test_solution_cleared_by_level_change(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        service.run_program(session_id, run_request(MODULE_1))
        service.select_level(session_id, SelectLevelRequest(level_index=1))

        filename, html = service.get_solution(session_id)

        assert filename == "qbo-module-2:-turning.html"
        assert "IN PROGRESS" in html
        assert "1. MOVE" not in html

    def test_solution_missing_session(self, service):
        response = service.get_solution("nope")
        assert response.error_code == ErrorCode.SESSION_NOT_FOUND

    def test_get_nonexistent_session(self, service):
        """Getting nonexistent session returns error."""
        response = service.get_session("nonexistent-id")

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.SESSION_NOT_FOUND

    def test_end_session(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        assert service.end_session(session_id)
        assert isinstance(service.get_session(session_id), ErrorResponse)
        assert session_id not in service.list_sessions()

    def test_run_program(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = service.run_program(session_id, run_request(MODULE_1))

        assert response.outcome.status == SessionStatus.WON
        assert response.outcome.message == "Module complete!"
        assert response.committed_count == 2
        assert response.earned
        assert response.events[0].event_type == "reset"
        assert response.events[-1].event_type == "finished"
        assert response.events[-1].snapshot.collected == ["4,1"]

    def test_run_reports_delays(self, tmp_path):
        service = APIService(
            session_manager=SessionManager(config=EngineConfig()),
            level_generator=LevelGenerator(cache_dir=str(tmp_path)),
        )
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = service.run_program(session_id, run_request(MODULE_1))

        assert [e.delay for e in response.events] == pytest.approx(
            [0.0, 0.1, 0.16, 0.64, 0.16, 1.14]
        )

    def test_losing_run(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = service.run_program(session_id, run_request([{"type": "JUMP"}, {"type": "JUMP"}]))

        assert response.outcome.status == SessionStatus.LOST
        assert response.outcome.reason == "FellOffWorld"
        assert not response.earned

    def test_select_locked_level(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = service.select_level(session_id, SelectLevelRequest(level_index=2))

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.LEVEL_LOCKED

    def test_select_unlocked_level(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        service.run_program(session_id, run_request(MODULE_1))

        response = service.select_level(session_id, SelectLevelRequest(level_index=1))

        assert response.level_index == 1
        assert response.level.level_id == 2

    def test_select_missing_level(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        response = service.select_level(session_id, SelectLevelRequest(level_index=40))
        assert response.error_code == ErrorCode.LEVEL_NOT_FOUND

    def test_reset(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        service.run_program(session_id, run_request(MODULE_1))

        response = service.reset(session_id)

        assert response.status == SessionStatus.IDLE
        assert response.snapshot.collected == []

    def test_progress(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        service.run_program(session_id, run_request(MODULE_1))

        response = service.get_progress(session_id)

        assert response.earned == [1]
        assert response.unlocked == [0, 1]
        assert not response.orientation_complete
        assert response.badge is None

    def test_generate_level_into_session(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = service.generate_level(
            GenerateLevelRequest(prompt="a bridge", session_id=session_id)
        )

        assert response.success
        assert response.level_index == 6
        assert service.get_session(session_id).level.name == "Sky Bridge"

    def test_generate_level_failure(self, tmp_path):
        service = make_service(tmp_path, response="not json")

        response = service.generate_level(GenerateLevelRequest(prompt="a bridge"))

        assert not response.success
        assert response.errors

    def test_to_program_keeps_block_ids(self):
        program = to_program([
            InstructionInfo(id="b1", type=InstructionType.MOVE),
            InstructionInfo(type=InstructionType.JUMP),
        ])

        assert program[0].instruction_id == "b1"
        assert program[1].instruction_id


class TestHTTPEndpoints:
    """Tests for the FastAPI routes."""

    @pytest.fixture
    def client(self, tmp_path):
        return TestClient(create_app(make_service(tmp_path)))

    def create_session(self, client) -> str:
        response = client.post("/api/v1/sessions")
        assert response.status_code == 200
        return response.json()["session_id"]

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_levels(self, client):
        assert client.get("/api/v1/levels").json()["count"] == 6

        response = client.get("/api/v1/levels/99")
        assert response.status_code == 404
        assert response.json()["error_code"] == "LEVEL_NOT_FOUND"

    def test_session_lifecycle(self, client):
        session_id = self.create_session(client)

        assert client.get(f"/api/v1/sessions/{session_id}").json()["status"] == "idle"
        assert session_id in client.get("/api/v1/sessions").json()["sessions"]

        response = client.delete(f"/api/v1/sessions/{session_id}")
        assert response.json()["success"] is True
        assert client.get(f"/api/v1/sessions/{session_id}").status_code == 404

    def test_run_and_unlock(self, client):
        session_id = self.create_session(client)

        locked = client.post(f"/api/v1/sessions/{session_id}/level", json={"level_index": 1})
        assert locked.status_code == 403
        assert locked.json()["error_code"] == "LEVEL_LOCKED"

        run = client.post(f"/api/v1/sessions/{session_id}/run", json={"program": MODULE_1})
        assert run.status_code == 200
        assert run.json()["outcome"]["status"] == "won"

        selected = client.post(f"/api/v1/sessions/{session_id}/level", json={"level_index": 1})
        assert selected.status_code == 200
        assert selected.json()["level"]["name"] == "Module 2: Turning"

        progress = client.get(f"/api/v1/sessions/{session_id}/progress").json()
        assert progress["earned"] == [1]

    def test_run_unknown_block(self, client):
        session_id = self.create_session(client)

        response = client.post(
            f"/api/v1/sessions/{session_id}/run", json={"program": [{"type": "FLY"}]}
        )

        assert response.status_code == 422

    def test_run_missing_session(self, client):
        response = client.post("/api/v1/sessions/nope/run", json={"program": []})

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_reset(self, client):
        session_id = self.create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/run", json={"program": MODULE_1})

        response = client.post(f"/api/v1/sessions/{session_id}/reset")

        assert response.status_code == 200
        assert response.json()["status"] == "idle"

    def test_create_session_with_bad_level(self, client):
        response = client.post("/api/v1/sessions", json={"levels": [{"grid": []}]})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_LEVEL"

    def test_create_session_with_bad_metadata(self, client):
        level = dict(GENERATED_LEVEL, id="custom", metadata="oops")

        response = client.post("/api/v1/sessions", json={"levels": [level]})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_LEVEL"

    def test_download_solution(self, client):
        session_id = self.create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/run", json={"program": MODULE_1})

        response = client.get(f"/api/v1/sessions/{session_id}/solution")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers["content-disposition"] == (
            'attachment; filename="qbo-module-1:-forward-motion.html"'
        )
        assert "Level Solved: Module 1: Forward Motion" in response.text
        assert "SUCCESS" in response.text

    def test_download_solution_missing_session(self, client):
        response = client.get("/api/v1/sessions/nope/solution")

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_generate_level(self, client):
        response = client.post("/api/v1/levels/generate", json={"prompt": "a bridge"})

        assert response.status_code == 200
        assert response.json()["level"]["name"] == "Sky Bridge"

    def test_generate_level_failure(self, tmp_path):
        client = TestClient(create_app(make_service(tmp_path, response="[]")))

        response = client.post("/api/v1/levels/generate", json={"prompt": "a bridge"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "GENERATION_FAILED"

    def test_generation_does_not_block_other_requests(self, tmp_path):
        """A slow model call leaves the event loop free for other requests."""
        release = threading.Event()

        class GatedClient(LevelDesignClient):
            def generate(self, prompt, system_instruction, response_schema):
                release.wait(timeout=5)
                return json.dumps(GENERATED_LEVEL)

        app = create_app(APIService(
            session_manager=SessionManager(config=EngineConfig.instant()),
            level_generator=LevelGenerator(
                llm_client=GatedClient(), cache_dir=str(tmp_path / "cache")
            ),
        ))
        finished = []

        async def scenario():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:

                async def generate():
                    response = await client.post(
                        "/api/v1/levels/generate", json={"prompt": "a bridge"}
                    )
                    finished.append(("generate", response.status_code))

                async def health():
                    await asyncio.sleep(0.05)
                    try:
                        response = await client.get("/health")
                        finished.append(("health", response.status_code))
                    finally:
                        release.set()

                await asyncio.gather(generate(), health())

        asyncio.run(scenario())

        assert finished == [("health", 200), ("generate", 200)]


class TestWebSocket:
    """Tests for timed runs over the WebSocket."""

    @pytest.fixture
    def client(self, tmp_path):
        return TestClient(create_app(make_service(tmp_path)))

    def test_timed_run_streams_events(self, client):
        session_id = client.post("/api/v1/sessions").json()["session_id"]

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as ws:
            initial = ws.receive_json()
            assert initial["type"] == "state_update"
            assert initial["payload"]["session_id"] == session_id

            ws.send_text(json.dumps({"type": "run", "payload": {"program": MODULE_1}}))

            events = []
            message = ws.receive_json()
            while message["type"] == "run_event":
                events.append(message["payload"])
                message = ws.receive_json()

            assert message["type"] == "outcome"
            assert message["payload"]["status"] == "won"
            assert message["payload"]["earned"] is True
            assert [e["event_type"] for e in events] == [
                "reset", "commit", "collect", "commit", "collect", "finished",
            ]

    def test_ping(self, client):
        session_id = client.post("/api/v1/sessions").json()["session_id"]

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json() == {"type": "pong"}

    def test_invalid_messages(self, client):
        session_id = client.post("/api/v1/sessions").json()["session_id"]

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as ws:
            ws.receive_json()

            ws.send_text("{oops")
            assert ws.receive_json()["payload"]["message"] == "Invalid JSON"

            ws.send_text(json.dumps({"type": "run", "payload": {"program": [{"type": "FLY"}]}}))
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["payload"]["error_code"] == "VALIDATION_ERROR"

    def test_unknown_session(self, client):
        with client.websocket_connect("/api/v1/sessions/nope/ws") as ws:
            message = ws.receive_json()

        assert message["type"] == "error"
        assert message["payload"]["error_code"] == "SESSION_NOT_FOUND"

    def test_closed_socket_is_forgotten(self, client):
        session_id = client.post("/api/v1/sessions").json()["session_id"]

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as ws:
            ws.receive_json()
            assert session_id in client.app.state.ws_connections

        assert client.app.state.ws_connections == {}
