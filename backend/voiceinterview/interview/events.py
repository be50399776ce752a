from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Awaitable, Callable

from core.state import TurnState

STATUS = "interview:status"
USER_TRANSCRIPT = "user:transcript"
AUDIO_CHUNK = "audio:chunk"
SESSION_WARNING = "session:warning"
SESSION_END = "session:end"
ERROR = "error"

SendFn = Callable[[dict], Awaitable[None]]


@dataclass
class InterviewEmitter:
    """Typed server events for one connection; transport lives behind ``send_fn``."""

    send_fn: SendFn

    async def status(self, state: TurnState, message: str) -> None:
        await self.send_fn({"type": STATUS, "state": state.value, "message": message})

    async def user_transcript(self, text: str) -> None:
        await self.send_fn({"type": USER_TRANSCRIPT, "text": text})

    async def audio(self, text: str, audio: bytes, index: int) -> None:
        await self.send_fn({
            "type": AUDIO_CHUNK,
            "text": text,
            "audio": base64.b64encode(audio or b"").decode("ascii"),
            "index": index,
        })

    async def warning(self, message: str, count: int) -> None:
        await self.send_fn({"type": SESSION_WARNING, "message": message, "count": count})

    async def session_end(self, reason: str, message: str) -> None:
        await self.send_fn({"type": SESSION_END, "reason": reason, "message": message})

    async def error(self, message: str) -> None:
        await self.send_fn({"type": ERROR, "message": message})
