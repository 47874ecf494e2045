import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4.1-mini").strip()
TRANSCRIBE_MODEL = str(os.getenv("TRANSCRIBE_MODEL") or "whisper-1").strip()
TRANSCRIBE_LANGUAGE = str(os.getenv("TRANSCRIBE_LANGUAGE") or "en").strip()

INTERVIEW_ROLE = str(os.getenv("INTERVIEW_ROLE") or "Full Stack Developer").strip()
INTERVIEW_DURATION_SEC = max(30, int(os.getenv("INTERVIEW_DURATION_SEC", "300")))
INTERVIEW_ENFORCE_DEADLINE = _env_flag("INTERVIEW_ENFORCE_DEADLINE")
# "||" separated so questions may contain commas
INTERVIEW_QUESTIONS_RAW = str(os.getenv("INTERVIEW_QUESTIONS") or "").strip()

FLUSH_INTERVAL_SEC = max(0.01, float(os.getenv("FLUSH_INTERVAL_SEC", "10")))
AUDIO_SAMPLE_RATE = max(8000, int(os.getenv("AUDIO_SAMPLE_RATE", "44000")))
TEMP_AUDIO_DIR = Path(os.getenv("TEMP_AUDIO_DIR") or (_BACKEND_ROOT / "temp_audio"))
RECORDINGS_DIR = Path(os.getenv("RECORDINGS_DIR") or (_BACKEND_ROOT / "recordings"))
MAX_RECORDING_BYTES = max(1024, int(os.getenv("MAX_RECORDING_BYTES", str(500 * 1024 * 1024))))

LLM_TIMEOUT_SEC = max(1.0, float(os.getenv("LLM_TIMEOUT_SEC", "18")))
LLM_RETRIES = max(0, int(os.getenv("LLM_RETRIES", "2")))
STT_TIMEOUT_SEC = max(1.0, float(os.getenv("STT_TIMEOUT_SEC", "30")))

SESSION_CLEANUP_TTL_SEC = max(60, int(os.getenv("SESSION_CLEANUP_TTL_SEC", "1800")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
