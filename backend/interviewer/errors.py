from __future__ import annotations


class InterviewError(Exception):
    """Base class for recoverable interview failures."""


class InvalidFragment(InterviewError):
    pass


class InvalidTransition(InterviewError):
    def __init__(self, operation: str, state: str):
        super().__init__(f"{operation} is not valid from state {state}")
        self.operation = operation
        self.state = state


class TranscriptionFailure(InterviewError):
    pass


class GenerationFailure(InterviewError):
    pass


class TransportFailure(InterviewError):
    pass
