import asyncio
import logging
import os
import tempfile
import wave
from pathlib import Path

from openai import AsyncOpenAI

from core.config import (
    AUDIO_SAMPLE_RATE,
    STT_TIMEOUT_SEC,
    TEMP_AUDIO_DIR,
    TRANSCRIBE_LANGUAGE,
    TRANSCRIBE_MODEL,
)
from interviewer.errors import TranscriptionFailure
from interviewer.services.openai_service import build_openai_client

logger = logging.getLogger("interviewer.services.whisper_service")


def write_wav(path: str, pcm_bytes: bytes, sample_rate: int = AUDIO_SAMPLE_RATE) -> None:
    with wave.open(path, "wb") as writer:
        writer.setnchannels(1)
        writer.setsampwidth(2)
        writer.setframerate(sample_rate)
        writer.writeframes(pcm_bytes)


class TranscriptionService:
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = TRANSCRIBE_MODEL,
        temp_dir: Path | str = TEMP_AUDIO_DIR,
        sample_rate: int = AUDIO_SAMPLE_RATE,
        timeout_sec: float = STT_TIMEOUT_SEC,
    ):
        self.client = client or build_openai_client()
        self.model = model
        self.temp_dir = Path(temp_dir)
        self.sample_rate = sample_rate
        self.timeout_sec = timeout_sec

    async def transcribe(self, clip: bytes, language: str = TRANSCRIBE_LANGUAGE) -> str:
        if not clip:
            return ""

        path = None
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(delete=False, suffix=".wav", prefix="audio_", dir=self.temp_dir) as f:
                path = f.name

            write_wav(path, clip, self.sample_rate)
            logger.info("Saved clip for transcription | path=%s bytes=%s", path, len(clip))

            with open(path, "rb") as audio_file:
                result = await asyncio.wait_for(
                    self.client.audio.transcriptions.create(
                        file=audio_file,
                        model=self.model,
                        response_format="text",
                        language=language,
                    ),
                    timeout=self.timeout_sec,
                )
        except asyncio.TimeoutError as exc:
            raise TranscriptionFailure(f"Transcription timed out after {self.timeout_sec}s") from exc
        except Exception as exc:
            raise TranscriptionFailure(f"Transcription failed: {exc}") from exc
        finally:
            if path is not None:
                try:
                    os.unlink(path)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    logger.error("Failed to delete temp file | path=%s err=%s", path, exc)

        if isinstance(result, str):
            return result
        return str(getattr(result, "text", "") or "")
