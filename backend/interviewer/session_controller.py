import asyncio
import logging
import time
from typing import Awaitable, Callable

from core.logger import log_event
from core.state import FlushOutcome, InterviewState
from interviewer.errors import GenerationFailure, InvalidFragment, InvalidTransition, TransportFailure
from interviewer.interview.questions import (
    CLOSING,
    GREETING,
    NOT_HEARD_PROMPT,
    REPEAT_PROMPT,
    UNKNOWN_TOPIC,
    dont_know_acknowledgment,
)
from interviewer.interview.session import InterviewSession
from interviewer.services.audio_service import AudioAggregator
from interviewer.services.openai_service import FollowUpGenerator
from interviewer.services.uncertainty_service import user_doesnt_know
from interviewer.services.whisper_service import TranscriptionService
from interviewer.system_metrics import increment_metric, observe_pipeline_latency_ms

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger("session_controller")

SendFn = Callable[[dict], Awaitable[None]]


class InterviewSessionController:
    """
    Interview state machine for one connection: IDLE -> INTERVIEWING -> ENDED.

    Outbound messages go through a FIFO drained by a single sender task, so
    emit_utterance never blocks and delivery keeps emission order.
    """

    def __init__(
        self,
        session: InterviewSession,
        send_fn: SendFn,
        transcriber: TranscriptionService,
        generator: FollowUpGenerator,
        flush_interval_sec: float,
        enforce_deadline: bool = False,
    ):
        self.session = session
        self.send_fn = send_fn
        self.generator = generator
        self.enforce_deadline = enforce_deadline
        self.aggregator = AudioAggregator(
            session=session,
            transcriber=transcriber,
            on_transcript=self._handle_transcript,
            on_failure=self._handle_transcription_failure,
            interval_sec=flush_interval_sec,
        )
        self.tasks: list[asyncio.Task] = []
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._sender_task: asyncio.Task | None = None
        self._deadline_task: asyncio.Task | None = None

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def state(self) -> InterviewState:
        return self.session.state

    def _log_event(self, event: str, **fields) -> None:
        log_event("session_controller", event, self.session_id, **fields)

    def create_task(self, coro):
        task = asyncio.create_task(coro)
        self.tasks.append(task)
        return task

    # ================= LIFECYCLE =================

    def start(self) -> None:
        if self.session.state != InterviewState.IDLE:
            raise InvalidTransition("start", self.session.state.value)

        self.session.state = InterviewState.INTERVIEWING
        increment_metric("sessions_started", 1)
        self._log_event("started", role=self.session.role, duration_sec=self.session.duration_sec)

        self.emit_event({
            "type": "interview_started",
            "duration_sec": self.session.duration_sec,
            "role": self.session.role,
        })
        self.emit_utterance(GREETING)

        if self.session.questions:
            opening = self.session.questions[0]
            self.session.record_question(opening)
            self.emit_utterance(opening)

        if self.enforce_deadline:
            self._deadline_task = self.create_task(self._deadline())

    def feed_audio(self, fragment) -> bool:
        if self.session.state != InterviewState.INTERVIEWING:
            logger.warning(
                "Audio ignored outside interview | session_id=%s state=%s",
                self.session_id,
                self.session.state.value,
            )
            return False

        try:
            self._validate_fragment(fragment)
        except InvalidFragment as exc:
            increment_metric("invalid_fragments", 1)
            logger.error("Received empty audio data | session_id=%s err=%s", self.session_id, exc)
            return False

        self.aggregator.append(fragment)
        return True

    def stop(self, reason: str = "stop") -> None:
        if self.session.state == InterviewState.ENDED:
            return

        self.session.state = InterviewState.ENDED
        self.aggregator.cancel()
        self.aggregator.clear()

        current = asyncio.current_task() if self._has_running_loop() else None
        if self._deadline_task is not None and self._deadline_task is not current:
            self._deadline_task.cancel()

        if self._sender_task is not None:
            # sentinel lets the sender deliver what was queued before stop, then exit
            self._outbox.put_nowait(None)

        increment_metric("sessions_ended", 1)
        self._log_event(
            "stopped",
            reason=reason,
            asked_count=len(self.session.asked_questions),
            dont_know_count=len(self.session.dont_know_topics),
        )

    async def aclose(self, reason: str = "closed") -> None:
        aggregator_task = self.aggregator.task
        self.stop(reason)

        current = asyncio.current_task()
        pending = [task for task in [aggregator_task, *self.tasks] if task is not None and task is not current]
        for task in pending:
            if task is not self._sender_task:
                task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def drain(self) -> None:
        await self._outbox.join()

    async def flush(self) -> FlushOutcome:
        return await self.aggregator.flush()

    # ================= OUTBOUND =================

    def emit_utterance(self, text: str) -> bool:
        if self.session.state == InterviewState.ENDED:
            logger.info("Utterance discarded for ended session | session_id=%s", self.session_id)
            return False
        return self.emit_event({"type": "bot_response", "text": str(text)})

    def emit_event(self, payload: dict) -> bool:
        if self.session.state == InterviewState.ENDED:
            return False
        message = {"session_id": self.session_id, **payload}
        self._outbox.put_nowait(message)
        if self._sender_task is None or self._sender_task.done():
            self._sender_task = self.create_task(self._sender_loop())
        return True

    async def _sender_loop(self) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                if payload is None:
                    return
                await self._deliver(payload)
            finally:
                self._outbox.task_done()

    async def _deliver(self, payload: dict) -> None:
        try:
            try:
                await self.send_fn(payload)
            except Exception as exc:
                raise TransportFailure(str(exc)) from exc
        except TransportFailure as exc:
            increment_metric("transport_failures", 1)
            logger.warning(
                "Utterance delivery failed | session_id=%s type=%s err=%s",
                self.session_id,
                payload.get("type"),
                exc,
            )
            return

        if payload.get("type") == "bot_response":
            increment_metric("utterances_sent", 1)

    # ================= FLUSH PIPELINE =================

    async def _handle_transcript(self, transcript: str) -> FlushOutcome:
        started_at = time.monotonic()
        if not self.session.is_live:
            return FlushOutcome.DISCARDED

        self._log_event("transcribed", transcript=transcript)

        if not transcript or not str(transcript).strip():
            increment_metric("empty_transcripts", 1)
            logger.warning("Empty or undefined transcript received | session_id=%s", self.session_id)
            self.emit_utterance(NOT_HEARD_PROMPT)
            return FlushOutcome.SILENT

        dont_know_topic = None
        if user_doesnt_know(transcript):
            dont_know_topic = self.session.last_question or UNKNOWN_TOPIC
            increment_metric("dont_know_answers", 1)
            self.emit_utterance(dont_know_acknowledgment(dont_know_topic))

        dont_know_topics = list(self.session.dont_know_topics)
        if dont_know_topic is not None:
            dont_know_topics.append(dont_know_topic)

        try:
            question = await self.generator.generate(
                role=self.session.role,
                asked_questions=list(self.session.asked_questions),
                dont_know_topics=dont_know_topics,
                transcript=transcript,
            )
        except GenerationFailure as exc:
            if not self.session.is_live:
                return FlushOutcome.DISCARDED
            increment_metric("generation_failures", 1)
            logger.error("Follow-up generation failed | session_id=%s err=%s", self.session_id, exc)
            self.emit_utterance(REPEAT_PROMPT)
            return FlushOutcome.FAILED

        if not self.session.is_live:
            logger.info("Follow-up discarded for ended session | session_id=%s", self.session_id)
            return FlushOutcome.DISCARDED

        if dont_know_topic is not None:
            self.session.record_dont_know(dont_know_topic)
        self.session.record_question(question)
        increment_metric("followups_generated", 1)
        self.emit_utterance(question)

        observe_pipeline_latency_ms((time.monotonic() - started_at) * 1000.0)
        self._log_event(
            "followup_asked",
            question=question,
            dont_know=dont_know_topic is not None,
            asked_count=len(self.session.asked_questions),
        )
        return FlushOutcome.ANSWERED

    async def _handle_transcription_failure(self, exc: Exception) -> FlushOutcome:
        if not self.session.is_live:
            return FlushOutcome.DISCARDED
        self.emit_utterance(REPEAT_PROMPT)
        return FlushOutcome.FAILED

    async def _deadline(self) -> None:
        await asyncio.sleep(self.session.duration_sec)
        if not self.session.is_live:
            return
        self._log_event("deadline_reached", duration_sec=self.session.duration_sec)
        self.emit_utterance(CLOSING)
        self.stop("deadline")

    # ================= HELPERS =================

    @staticmethod
    def _validate_fragment(fragment) -> None:
        if fragment is None:
            raise InvalidFragment("audio fragment is None")
        if not isinstance(fragment, (bytes, bytearray, memoryview)):
            raise InvalidFragment(f"unsupported fragment type {type(fragment).__name__}")
        if len(fragment) == 0:
            raise InvalidFragment("audio fragment is empty")

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True
