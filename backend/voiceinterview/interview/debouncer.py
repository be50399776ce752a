import asyncio
import logging
import time
import uuid
from typing import Awaitable, Callable

from core.config import SAFETY
from voiceinterview.interview.sentences import ends_sentence

logger = logging.getLogger("turn")

TurnCallback = Callable[[str], Awaitable[None]]


class TranscriptDebouncer:
    """
    Decides when the candidate has finished a turn.

    Every fragment (interim or final) restarts the completion timer, so a
    speaker is never cut off mid-utterance. Only final fragments are buffered.
    The quiet period is short when the buffer ends in sentence punctuation and
    long otherwise. When the timer fires with text buffered, the buffer is
    drained and handed to ``on_turn_complete``.
    """

    def __init__(
        self,
        on_turn_complete: TurnCallback,
        short_wait_sec: float = SAFETY.debounce_short_sec,
        long_wait_sec: float = SAFETY.debounce_long_sec,
    ):
        self._on_turn_complete = on_turn_complete
        self.short_wait_sec = float(short_wait_sec)
        self.long_wait_sec = float(long_wait_sec)
        self._fragments: list[str] = []
        self._timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self.turn_id = str(uuid.uuid4())
        self.started_at: float | None = None

    @property
    def buffered_text(self) -> str:
        return " ".join(self._fragments).strip()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def wait_interval(self) -> float:
        return self.short_wait_sec if ends_sentence(self.buffered_text) else self.long_wait_sec

    def add_fragment(self, text: str, is_final: bool) -> None:
        text = str(text or "").strip()
        if is_final and text:
            if self.started_at is None:
                self.started_at = time.monotonic()
            self._fragments.append(text)
        self._restart_timer()

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._wait_then_fire(self.wait_interval()))

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _wait_then_fire(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Detach before running the callback so a new fragment starts a fresh
        # timer instead of cancelling the turn already in progress.
        current = asyncio.current_task()
        if self._timer is current:
            self._timer = None
        if current is not None:
            self._inflight.add(current)
        try:
            await self._fire(reason=f"quiet_{delay:.1f}s")
        finally:
            if current is not None:
                self._inflight.discard(current)

    def drain(self) -> str:
        text = self.buffered_text
        self._fragments = []
        return text

    async def _fire(self, reason: str) -> None:
        text = self.drain()
        if not text:
            return
        latency = time.monotonic() - self.started_at if self.started_at is not None else 0.0
        logger.info(f"[TURN {self.turn_id}] complete | reason={reason} chars={len(text)} span={latency:.2f}s")
        self.turn_id = str(uuid.uuid4())
        self.started_at = None
        await self._on_turn_complete(text)

    async def flush(self, reason: str = "forced") -> None:
        """Finalize immediately with whatever has been buffered."""
        self._cancel_timer()
        await self._fire(reason=reason)

    def reset(self) -> None:
        self._cancel_timer()
        self._fragments = []
        self.started_at = None

    async def aclose(self) -> None:
        self.reset()
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
