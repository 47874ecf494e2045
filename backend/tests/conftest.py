import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


@pytest.fixture
def outbox() -> list:
    return []


@pytest.fixture
def make_controller(outbox):
    from interviewer.interview.session import InterviewSession
    from interviewer.session_controller import InterviewSessionController
    from tests.fakes import FakeGenerator, FakeTranscriber

    def _make(
        questions=("Q1",),
        role="Backend Engineer",
        transcriber=None,
        generator=None,
        flush_interval_sec=60.0,
        duration_sec=300,
        enforce_deadline=False,
        send_fn=None,
    ):
        async def _send(payload: dict):
            outbox.append(payload)

        session = InterviewSession(role=role, questions=tuple(questions), duration_sec=duration_sec)
        return InterviewSessionController(
            session=session,
            send_fn=send_fn or _send,
            transcriber=transcriber or FakeTranscriber(),
            generator=generator or FakeGenerator(),
            flush_interval_sec=flush_interval_sec,
            enforce_deadline=enforce_deadline,
        )

    return _make
