import asyncio
from datetime import datetime, timezone
import logging
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile

from core.config import MAX_RECORDING_BYTES, RECORDINGS_DIR
from interviewer.schemas import RecordingSavedResponse
from interviewer.system_metrics import increment_metric

logger = logging.getLogger("recordings")

router = APIRouter()

CHUNK_BYTES = 1024 * 1024


def _recording_filename(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).isoformat().replace(":", "-").replace(".", "-").replace("+00-00", "Z")
    return f"interview-{stamp}.webm"


def get_recordings_dir() -> Path:
    RECORDINGS_DIR.mkdir(parents=True, exist_ok=True)
    return RECORDINGS_DIR


@router.post("/save-recording", response_model=RecordingSavedResponse)
async def save_recording(video: UploadFile | None = File(None)):
    if video is None:
        raise HTTPException(status_code=400, detail="No video file provided")

    filename = _recording_filename()
    target = get_recordings_dir() / filename
    written = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = await video.read(CHUNK_BYTES)
                if not chunk:
                    break
                written += len(chunk)
                if written > MAX_RECORDING_BYTES:
                    raise HTTPException(status_code=413, detail="Recording exceeds size limit")
                await asyncio.to_thread(out.write, chunk)
    except HTTPException:
        target.unlink(missing_ok=True)
        raise
    except OSError as exc:
        target.unlink(missing_ok=True)
        logger.error("Recording save failed | filename=%s err=%s", filename, exc)
        raise HTTPException(status_code=500, detail=f"Recording save failed: {exc}")
    finally:
        await video.close()

    if written == 0:
        target.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail="No video file provided")

    increment_metric("recordings_saved", 1)
    logger.info("Recording saved | filename=%s bytes=%s", filename, written)
    return {
        "message": "Video saved successfully",
        "filename": filename,
    }
