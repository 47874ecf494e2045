from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from core.config import (
    FLUSH_INTERVAL_SEC,
    INTERVIEW_DURATION_SEC,
    INTERVIEW_ENFORCE_DEADLINE,
    INTERVIEW_ROLE,
)
from core.state import InterviewState
from interviewer.interview.questions import get_initial_questions


@dataclass(frozen=True)
class InterviewSettings:
    role: str = INTERVIEW_ROLE
    questions: tuple[str, ...] = field(default_factory=lambda: tuple(get_initial_questions()))
    duration_sec: int = INTERVIEW_DURATION_SEC
    flush_interval_sec: float = FLUSH_INTERVAL_SEC
    enforce_deadline: bool = INTERVIEW_ENFORCE_DEADLINE


@dataclass
class InterviewSession:
    """
    In-memory state of one candidate's interview.

    asked_questions and dont_know_topics are append-only. pending_audio holds
    fragments received since the last completed flush.
    """

    role: str
    questions: tuple[str, ...] = ()
    duration_sec: int = INTERVIEW_DURATION_SEC
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: InterviewState = InterviewState.IDLE
    asked_questions: list[str] = field(default_factory=list)
    dont_know_topics: list[str] = field(default_factory=list)
    buffering: bool = False
    pending_audio: list[bytes] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: InterviewSettings, session_id: str | None = None) -> "InterviewSession":
        session = cls(
            role=settings.role,
            questions=tuple(settings.questions),
            duration_sec=settings.duration_sec,
        )
        if session_id:
            session.session_id = session_id
        return session

    @property
    def is_live(self) -> bool:
        return self.state != InterviewState.ENDED

    @property
    def last_question(self) -> str | None:
        return self.asked_questions[-1] if self.asked_questions else None

    def record_question(self, question: str) -> None:
        self.asked_questions.append(question)

    def record_dont_know(self, topic: str) -> None:
        self.dont_know_topics.append(topic)

    def snapshot(self) -> dict:
        return {
            "session_id": self.session_id,
            "role": self.role,
            "state": self.state.value,
            "asked_questions": list(self.asked_questions),
            "dont_know_topics": list(self.dont_know_topics),
            "duration_sec": self.duration_sec,
            "buffering": self.buffering,
            "pending_fragments": len(self.pending_audio),
        }
