"""Capabilities the turn orchestrator depends on.

Concrete adapters live in ``voiceinterview.services``; tests pass fakes.
"""

from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, Protocol

TranscriptCallback = Callable[[str, bool], Awaitable[None]]
SupersededCallback = Callable[[], Awaitable[None]]


class SpeechToText(Protocol):
    """One exclusive stream per user, leased to the connection (owner) that opened it."""

    async def open(
        self,
        user_id: str,
        owner: str,
        on_transcript: TranscriptCallback,
        on_superseded: SupersededCallback | None = None,
    ) -> None:
        ...

    async def send(self, user_id: str, owner: str, chunk: bytes) -> bool:
        ...

    async def close(self, user_id: str, owner: str) -> None:
        ...


class LanguageModel(Protocol):
    async def complete(self, system_prompt: str, history: list[dict], user_text: str) -> str:
        ...

    def stream(self, system_prompt: str, history: list[dict], user_text: str) -> AsyncIterator[str]:
        ...


class TextToSpeech(Protocol):
    async def synthesize(self, text: str, voice: str | None = None) -> bytes:
        ...
