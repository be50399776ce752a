from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Protocol

from core.config import SAFETY, STT, SafetyConfig, SttConfig

logger = logging.getLogger("safety_guard")

ELLIPSIS = "..."


class SpeechSignal(str, Enum):
    CONTINUE = "continue"
    SILENCE_TIMEOUT = "silence_timeout"
    MAX_DURATION_EXCEEDED = "max_duration_exceeded"


class VoiceActivityDetector(Protocol):
    def is_voice(self, chunk: bytes) -> bool:
        ...


class ChunkSizeVoiceDetector:
    """Treats any chunk above a byte threshold as voice."""

    def __init__(self, min_bytes: int = STT.vad_min_chunk_bytes):
        self.min_bytes = max(0, int(min_bytes))

    def is_voice(self, chunk: bytes) -> bool:
        return len(chunk or b"") > self.min_bytes


class SafetyGuard:
    def __init__(self, config: SafetyConfig = SAFETY):
        self.config = config

    def accept_chunk(self, chunk: bytes | None) -> bool:
        if not chunk:
            return False
        if len(chunk) > self.config.max_audio_chunk_bytes:
            logger.warning("audio chunk dropped | bytes=%s limit=%s", len(chunk), self.config.max_audio_chunk_bytes)
            return False
        return True

    def truncate_transcript(self, text: str) -> str:
        text = str(text or "")
        limit = self.config.max_transcript_chars
        if len(text) <= limit:
            return text
        logger.warning("transcript truncated | chars=%s limit=%s", len(text), limit)
        return text[:limit] + ELLIPSIS


class SpeechActivityTracker:
    """Continuous-speech and silence bookkeeping for one STT stream.

    Each signal fires once per window: after reporting, its reference clock is
    moved to ``now`` so a steady stream of chunks does not repeat the notice.
    """

    def __init__(
        self,
        config: SttConfig = STT,
        detector: VoiceActivityDetector | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.config = config
        self.detector = detector or ChunkSizeVoiceDetector(config.vad_min_chunk_bytes)
        self._clock = clock or time.monotonic
        self.reset()

    def reset(self) -> None:
        now_ts = self._clock()
        self.last_voice_at: float | None = None
        self.speech_started_at: float | None = None
        self._silence_reference = now_ts

    def note_voice(self, now_ts: float | None = None) -> None:
        now_ts = self._clock() if now_ts is None else now_ts
        if self.last_voice_at is None or (now_ts - self.last_voice_at) > self.config.speech_gap_sec:
            self.speech_started_at = now_ts
        self.last_voice_at = now_ts
        self._silence_reference = now_ts

    def end_utterance(self) -> None:
        self.speech_started_at = None
        self.last_voice_at = None
        self._silence_reference = self._clock()

    def observe_chunk(self, chunk: bytes) -> SpeechSignal:
        now_ts = self._clock()
        if self.detector.is_voice(chunk):
            self.note_voice(now_ts)

        if self.speech_started_at is not None and self.last_voice_at is not None:
            speaking = (now_ts - self.last_voice_at) <= self.config.speech_gap_sec
            if speaking and (now_ts - self.speech_started_at) > self.config.max_continuous_speech_sec:
                self.speech_started_at = now_ts
                return SpeechSignal.MAX_DURATION_EXCEEDED

        if (now_ts - self._silence_reference) > self.config.silence_timeout_sec:
            self._silence_reference = now_ts
            return SpeechSignal.SILENCE_TIMEOUT

        return SpeechSignal.CONTINUE
