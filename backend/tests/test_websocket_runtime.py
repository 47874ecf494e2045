import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from interviewer.api import ws_voice
from interviewer.interview.questions import GREETING, dont_know_acknowledgment
from interviewer.interview.session import InterviewSettings
from interviewer.main import app
from tests.fakes import FakeGenerator, FakeTranscriber


class FakeWebSocket:
    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.sent = []

    async def send_text(self, payload: str):
        await asyncio.sleep(0)
        self.sent.append(payload)


class FakeDependencyProvider:
    def __init__(self, transcripts=None, questions=None):
        self.transcriber = FakeTranscriber(results=transcripts)
        self.generator = FakeGenerator(results=questions)
        self.roles = []

    def create_settings(self, role=None):
        self.roles.append(role)
        return InterviewSettings(
            role=role or "Full Stack Developer",
            questions=("Q1",),
            duration_sec=300,
            flush_interval_sec=0.2,
            enforce_deadline=False,
        )

    def create_transcriber(self):
        return self.transcriber

    def create_generator(self):
        return self.generator


def _receive_until(ws, predicate, limit: int = 20) -> list[dict]:
    received = []
    for _ in range(limit):
        message = ws.receive_json()
        received.append(message)
        if predicate(message):
            return received
    raise AssertionError(f"expected message not received: {received}")


@pytest.mark.asyncio
async def test_send_text_with_lock_serializes_single_connection():
    ws = FakeWebSocket()
    ws_voice.websocket_send_locks[ws] = asyncio.Lock()

    async def _send(i: int):
        await ws_voice._send_text_with_lock(ws, json.dumps({"index": i}))

    await asyncio.gather(*[_send(i) for i in range(50)])
    assert len(ws.sent) == 50

    decoded = [json.loads(item)["index"] for item in ws.sent]
    assert sorted(decoded) == list(range(50))

    ws_voice.websocket_send_locks.pop(ws, None)


def test_interview_over_websocket(monkeypatch: pytest.MonkeyPatch):
    provider = FakeDependencyProvider(transcripts=["I don't know that one"], questions=["Q2"])
    monkeypatch.setattr(ws_voice, "dependency_provider", provider)

    client = TestClient(app)
    with client.websocket_connect("/ws/interview?role=Backend%20Engineer") as ws:
        ws.send_json({"type": "start_interview"})
        started = ws.receive_json()
        assert started["type"] == "interview_started"
        assert started["role"] == "Backend Engineer"
        assert ws.receive_json()["text"] == GREETING
        assert ws.receive_json()["text"] == "Q1"

        ws.send_bytes(b"chunk-a")
        ws.send_bytes(b"chunk-b")
        received = _receive_until(ws, lambda m: m.get("text") == "Q2")
        texts = [m.get("text") for m in received if m.get("type") == "bot_response"]
        assert texts == [dont_know_acknowledgment("Q1"), "Q2"]

        ws.send_json({"type": "sync_state_request"})
        state = _receive_until(ws, lambda m: m.get("type") == "session_state")[-1]
        assert state["asked_questions"] == ["Q1", "Q2"]
        assert state["dont_know_topics"] == ["Q1"]
        assert state["state"] == "interviewing"

        metrics = client.get("/api/system/metrics").json()
        assert started["session_id"] in metrics["active_session_ids"]

        ws.send_json({"type": "stop"})

    assert provider.roles == ["Backend Engineer"]
    assert provider.transcriber.clips == [b"chunk-achunk-b"]


def test_repeated_start_reports_error(monkeypatch: pytest.MonkeyPatch):
    provider = FakeDependencyProvider()
    monkeypatch.setattr(ws_voice, "dependency_provider", provider)

    client = TestClient(app)
    with client.websocket_connect("/ws/interview") as ws:
        ws.send_json({"type": "start_interview"})
        _receive_until(ws, lambda m: m.get("text") == "Q1")

        ws.send_json({"type": "start_interview"})
        error = _receive_until(ws, lambda m: m.get("type") == "error")[-1]
        assert error["code"] == "invalid_transition"

        ws.send_json({"type": "ping"})
        assert _receive_until(ws, lambda m: m.get("type") == "pong")[-1]["type"] == "pong"
        ws.send_json({"type": "stop"})


def test_invalid_json_is_reported(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(ws_voice, "dependency_provider", FakeDependencyProvider())

    client = TestClient(app)
    with client.websocket_connect("/ws/interview") as ws:
        ws.send_text("{not json")
        assert ws.receive_json()["code"] == "invalid_json"
        ws.send_text("[1, 2]")
        assert ws.receive_json()["code"] == "invalid_message"
        ws.send_json({"type": "stop"})


def test_healthz_and_metrics_routes():
    client = TestClient(app)
    assert client.get("/healthz").json() == {"status": "ok", "service": "interviewer"}

    metrics = client.get("/api/system/metrics").json()
    assert "flush_cycles_total" in metrics
    assert "sessions_active" in metrics
    assert isinstance(metrics["active_session_ids"], list)
    assert "avg_pipeline_latency_ms" in metrics
