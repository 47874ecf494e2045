import asyncio

import pytest

from core.state import FlushOutcome
from interviewer.errors import TranscriptionFailure
from interviewer.interview.session import InterviewSession
from interviewer.services.audio_service import AudioAggregator
from tests.fakes import FakeTranscriber, wait_until


def _aggregator(transcriber, interval_sec=60.0):
    session = InterviewSession(role="SRE", questions=("Q1",))
    seen: list = []

    async def _on_transcript(text: str):
        seen.append(("transcript", text))
        return FlushOutcome.ANSWERED

    async def _on_failure(exc: Exception):
        seen.append(("failure", exc))
        return FlushOutcome.FAILED

    aggregator = AudioAggregator(
        session=session,
        transcriber=transcriber,
        on_transcript=_on_transcript,
        on_failure=_on_failure,
        interval_sec=interval_sec,
    )
    return aggregator, session, seen


@pytest.mark.asyncio
async def test_flush_with_empty_buffer_does_nothing():
    transcriber = FakeTranscriber()
    aggregator, _session, seen = _aggregator(transcriber)

    assert await aggregator.flush() == FlushOutcome.EMPTY
    assert transcriber.clips == []
    assert seen == []


@pytest.mark.asyncio
async def test_many_fragments_flush_as_one_ordered_clip():
    transcriber = FakeTranscriber(results=["hello"])
    aggregator, session, seen = _aggregator(transcriber)

    fragments = [bytes([i]) * 3 for i in range(1, 21)]
    for fragment in fragments:
        aggregator.append(fragment)

    assert session.buffering is True
    assert await aggregator.flush() == FlushOutcome.ANSWERED
    assert transcriber.clips == [b"".join(fragments)]
    assert session.pending_audio == []
    assert seen == [("transcript", "hello")]
    aggregator.cancel()
    assert session.buffering is False


@pytest.mark.asyncio
async def test_failed_cycle_drops_its_audio():
    transcriber = FakeTranscriber(results=[TranscriptionFailure("boom"), "second"])
    aggregator, session, seen = _aggregator(transcriber)

    aggregator.append(b"first")
    assert await aggregator.flush() == FlushOutcome.FAILED
    assert session.pending_audio == []

    aggregator.append(b"next")
    await aggregator.flush()
    assert transcriber.clips == [b"first", b"next"]
    assert seen[0][0] == "failure"
    assert seen[1] == ("transcript", "second")
    aggregator.cancel()


@pytest.mark.asyncio
async def test_timer_flushes_once_for_burst_of_fragments():
    transcriber = FakeTranscriber(results=["answer"])
    aggregator, _session, seen = _aggregator(transcriber, interval_sec=0.02)

    for chunk in (b"a", b"b", b"c"):
        aggregator.append(chunk)

    await wait_until(lambda: len(seen) == 1)
    await asyncio.sleep(0.06)

    assert transcriber.clips == [b"abc"]
    assert len(seen) == 1
    aggregator.cancel()


@pytest.mark.asyncio
async def test_cycles_never_overlap_and_keep_mid_flight_fragments():
    gate = asyncio.Event()
    transcriber = FakeTranscriber(results=["one", "two"], gate=gate)
    aggregator, session, seen = _aggregator(transcriber, interval_sec=0.01)

    aggregator.append(b"1")
    await wait_until(lambda: len(transcriber.clips) == 1)

    aggregator.append(b"2")
    await asyncio.sleep(0.05)
    assert transcriber.clips == [b"1"]
    assert session.pending_audio == [b"1", b"2"]

    gate.set()
    await wait_until(lambda: len(transcriber.clips) == 2)
    await wait_until(lambda: len(seen) == 2)

    assert transcriber.clips == [b"1", b"2"]
    assert session.pending_audio == []
    aggregator.cancel()


@pytest.mark.asyncio
async def test_manual_flush_waits_for_timer_cycle_in_flight():
    gate = asyncio.Event()
    transcriber = FakeTranscriber(results=["one", "two"], gate=gate)
    aggregator, session, seen = _aggregator(transcriber, interval_sec=0.01)

    aggregator.append(b"1")
    await wait_until(lambda: len(transcriber.clips) == 1)
    assert aggregator.in_flight is True

    aggregator.append(b"2")
    manual = asyncio.create_task(aggregator.flush())
    await asyncio.sleep(0.02)
    aggregator.append(b"3")
    assert transcriber.clips == [b"1"]

    gate.set()
    await manual
    await wait_until(lambda: len(seen) == 2)
    await asyncio.sleep(0.03)

    assert transcriber.clips == [b"1", b"23"]
    assert session.pending_audio == []
    aggregator.cancel()


@pytest.mark.asyncio
async def test_cancel_stops_timer():
    transcriber = FakeTranscriber(results=["x"])
    aggregator, session, _seen = _aggregator(transcriber, interval_sec=0.02)

    aggregator.append(b"a")
    task = aggregator.task
    aggregator.cancel()
    aggregator.clear()
    await asyncio.sleep(0.06)

    assert task.cancelled() or task.done()
    assert transcriber.clips == []
    assert session.pending_audio == []
    assert aggregator.scheduled is False
