import logging

import edge_tts

from core.config import TTS, TtsConfig

logger = logging.getLogger("tts_service")


def clamp_tts_text(text: str, max_characters: int) -> str:
    """Cut to ``max_characters``, preferring to end on the last full stop."""
    text = str(text or "").strip()
    if len(text) <= max_characters:
        return text
    logger.warning("tts text truncated | chars=%s limit=%s", len(text), max_characters)
    clipped = text[:max_characters]
    last_dot = clipped.rfind(".")
    if last_dot > 0:
        return clipped[:last_dot + 1]
    return clipped + "..."


class EdgeSpeechSynthesizer:
    def __init__(self, config: TtsConfig = TTS):
        self.config = config

    async def synthesize(self, text: str, voice: str | None = None) -> bytes:
        clean_text = clamp_tts_text(text, self.config.max_characters)
        if not clean_text:
            raise ValueError("empty text")

        communicate = edge_tts.Communicate(text=clean_text, voice=voice or self.config.voice)
        audio = bytearray()
        async for chunk in communicate.stream():
            if chunk.get("type") == "audio":
                audio.extend(chunk.get("data") or b"")
        if not audio:
            raise RuntimeError("edge-tts returned no audio")
        logger.info("tts synthesized | chars=%s bytes=%s", len(clean_text), len(audio))
        return bytes(audio)
