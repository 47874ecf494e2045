# backend/core/state.py

from enum import Enum

class InterviewState(str, Enum):
    IDLE = "idle"
    INTERVIEWING = "interviewing"
    ENDED = "ended"


class FlushOutcome(str, Enum):
    EMPTY = "empty"
    SILENT = "silent"
    ANSWERED = "answered"
    FAILED = "failed"
    DISCARDED = "discarded"
