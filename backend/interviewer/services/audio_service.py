import asyncio
import logging
from typing import Awaitable, Callable

from core.state import FlushOutcome
from interviewer.errors import TranscriptionFailure
from interviewer.interview.session import InterviewSession
from interviewer.services.whisper_service import TranscriptionService
from interviewer.system_metrics import increment_metric

logger = logging.getLogger("audio")

TranscriptHandler = Callable[[str], Awaitable[FlushOutcome]]
FailureHandler = Callable[[Exception], Awaitable[FlushOutcome]]


class AudioAggregator:
    """
    Buffers a session's audio fragments and flushes them as one clip on a
    fixed interval.

    Flush cycles are serialized: the recurring timer awaits each cycle before
    sleeping again, and a manual flush() waits for the cycle in flight before
    taking its own snapshot of the buffer.
    """

    def __init__(
        self,
        session: InterviewSession,
        transcriber: TranscriptionService,
        on_transcript: TranscriptHandler,
        on_failure: FailureHandler,
        interval_sec: float,
    ):
        self.session = session
        self.transcriber = transcriber
        self.on_transcript = on_transcript
        self.on_failure = on_failure
        self.interval_sec = max(0.01, float(interval_sec))
        self._task: asyncio.Task | None = None
        self._flush_lock = asyncio.Lock()

    @property
    def scheduled(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def append(self, fragment: bytes) -> None:
        self.session.pending_audio.append(bytes(fragment))
        if not self.scheduled:
            self._task = asyncio.create_task(self._run())
            self.session.buffering = True
            logger.info("Flush timer scheduled | session_id=%s interval=%.2fs", self.session.session_id, self.interval_sec)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            try:
                await self.flush()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Flush cycle crashed | session_id=%s", self.session.session_id)

    @property
    def in_flight(self) -> bool:
        return self._flush_lock.locked()

    async def flush(self) -> FlushOutcome:
        async with self._flush_lock:
            return await self._flush_cycle()

    async def _flush_cycle(self) -> FlushOutcome:
        pending = self.session.pending_audio
        if not pending:
            return FlushOutcome.EMPTY

        consumed = len(pending)
        clip = b"".join(pending[:consumed])
        increment_metric("flush_cycles_total", 1)
        logger.info(
            "Flushing audio | session_id=%s fragments=%s bytes=%s",
            self.session.session_id,
            consumed,
            len(clip),
        )

        try:
            try:
                transcript = await self.transcriber.transcribe(clip)
            except TranscriptionFailure as exc:
                increment_metric("transcription_failures", 1)
                logger.error("Transcription failed | session_id=%s err=%s", self.session.session_id, exc)
                return await self.on_failure(exc)
            return await self.on_transcript(transcript)
        finally:
            # fragments received while this clip was in flight stay for the next cycle
            del pending[:consumed]

    def cancel(self) -> asyncio.Task | None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        self._task = None
        self.session.buffering = False
        return task

    def clear(self) -> None:
        self.session.pending_audio.clear()
