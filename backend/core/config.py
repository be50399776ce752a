import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_str(name: str, default: str = "") -> str:
    return str(os.getenv(name) or default).strip()


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


ENVIRONMENT = _env_str("ENV", "development").lower()
QA_MODE = _env_flag("QA_MODE")


@dataclass(frozen=True)
class SttConfig:
    model: str = "nova-2"
    language: str = "en-IN"
    endpointing_ms: int = 300
    silence_timeout_sec: float = 10.0
    max_continuous_speech_sec: float = 60.0
    speech_gap_sec: float = 3.0
    vad_min_chunk_bytes: int = 100
    # Empty encoding lets Deepgram detect the container (webm/opus from MediaRecorder).
    encoding: str = ""
    sample_rate: int = 0


@dataclass(frozen=True)
class LlmConfig:
    model: str = "llama-3.1-8b"
    base_url: str = "https://api.cerebras.ai/v1"
    api_key: str = ""
    max_tokens: int = 300
    temperature: float = 0.7
    timeout_sec: float = 15.0


@dataclass(frozen=True)
class TtsConfig:
    voice: str = "en-US-AvaNeural"
    max_characters: int = 500
    timeout_sec: float = 15.0


@dataclass(frozen=True)
class SafetyConfig:
    max_transcript_chars: int = 1000
    max_audio_chunk_bytes: int = 100_000
    debounce_short_sec: float = 1.0
    debounce_long_sec: float = 2.5
    history_max_messages: int = 20


@dataclass(frozen=True)
class BudgetConfig:
    daily_time_budget_sec: int = 30 * 60
    max_session_duration_sec: int = 60 * 60
    zombie_threshold_sec: int = 2 * 60
    start_rate_limit_sec: float = 5.0


STT = SttConfig(
    model=_env_str("STT_MODEL", "nova-2"),
    language=_env_str("STT_LANGUAGE", "en-IN"),
    endpointing_ms=max(10, int(os.getenv("STT_ENDPOINTING_MS", "300"))),
    silence_timeout_sec=max(1.0, float(os.getenv("STT_SILENCE_TIMEOUT_SEC", "10"))),
    max_continuous_speech_sec=max(5.0, float(os.getenv("STT_MAX_CONTINUOUS_SPEECH_SEC", "60"))),
    speech_gap_sec=max(0.5, float(os.getenv("STT_SPEECH_GAP_SEC", "3"))),
    vad_min_chunk_bytes=max(0, int(os.getenv("STT_VAD_MIN_CHUNK_BYTES", "100"))),
    encoding=_env_str("STT_ENCODING").lower(),
    sample_rate=max(0, int(os.getenv("STT_SAMPLE_RATE") or "0")),
)

LLM = LlmConfig(
    model=_env_str("LLM_MODEL", "llama-3.1-8b"),
    base_url=_env_str("LLM_BASE_URL", "https://api.cerebras.ai/v1"),
    api_key=_env_str("LLM_API_KEY") or _env_str("CEREBRAS_API_KEY") or _env_str("OPENAI_API_KEY"),
    max_tokens=max(16, int(os.getenv("LLM_MAX_TOKENS", "300"))),
    temperature=min(2.0, max(0.0, float(os.getenv("LLM_TEMPERATURE", "0.7")))),
    timeout_sec=max(1.0, float(os.getenv("LLM_TIMEOUT_SEC", "15"))),
)

TTS = TtsConfig(
    voice=_env_str("TTS_VOICE", "en-US-AvaNeural"),
    max_characters=max(50, int(os.getenv("TTS_MAX_CHARACTERS", "500"))),
    timeout_sec=max(1.0, float(os.getenv("TTS_TIMEOUT_SEC", "15"))),
)

SAFETY = SafetyConfig(
    max_transcript_chars=max(100, int(os.getenv("MAX_TRANSCRIPT_CHARS", "1000"))),
    max_audio_chunk_bytes=max(1024, int(os.getenv("MAX_AUDIO_CHUNK_BYTES", "100000"))),
    debounce_short_sec=max(0.1, float(os.getenv("DEBOUNCE_SHORT_SEC", "1.0"))),
    debounce_long_sec=max(0.2, float(os.getenv("DEBOUNCE_LONG_SEC", "2.5"))),
    history_max_messages=max(2, int(os.getenv("HISTORY_MAX_MESSAGES", "20"))),
)

BUDGET = BudgetConfig(
    daily_time_budget_sec=max(60, int(os.getenv("DAILY_TIME_BUDGET_SEC", "1800"))),
    max_session_duration_sec=max(60, int(os.getenv("MAX_SESSION_DURATION_SEC", "3600"))),
    zombie_threshold_sec=max(30, int(os.getenv("ZOMBIE_THRESHOLD_SEC", "120"))),
    start_rate_limit_sec=max(0.0, float(os.getenv("START_RATE_LIMIT_SEC", "5"))),
)

DEEPGRAM_API_KEY = _env_str("DEEPGRAM_API_KEY")
WS_MAX_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "65536")))
REDIS_URL = _env_str("REDIS_URL")
USE_REDIS_USER_STORE = _env_flag("USE_REDIS_USER_STORE")
