import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from voiceinterview.interview.providers import SupersededCallback, TranscriptCallback
from voiceinterview.services.deepgram_service import DeepgramStream

logger = logging.getLogger("stt_streams")

StreamFactory = Callable[[TranscriptCallback], DeepgramStream]


@dataclass
class _StreamLease:
    owner: str
    stream: DeepgramStream
    on_superseded: SupersededCallback | None = None


class SpeechStreamRegistry:
    """
    Owns at most one live STT stream per user id.

    Each stream is leased to the connection that opened it. Only the owner can
    send into or close its stream; opening a new stream for the same user
    closes the old one and tells the previous owner it was superseded.
    """

    def __init__(self, stream_factory: StreamFactory = DeepgramStream):
        self._stream_factory = stream_factory
        self._leases: dict[str, _StreamLease] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._leases

    def __len__(self) -> int:
        return len(self._leases)

    async def open(
        self,
        user_id: str,
        owner: str,
        on_transcript: TranscriptCallback,
        on_superseded: SupersededCallback | None = None,
    ) -> None:
        async with self._lock:
            previous = self._leases.pop(user_id, None)
        if previous is not None:
            logger.warning("replacing open stt stream | user_id=%s previous_owner=%s owner=%s", user_id, previous.owner, owner)
            await previous.stream.close()

        stream = self._stream_factory(on_transcript)
        await stream.connect()
        async with self._lock:
            self._leases[user_id] = _StreamLease(owner=owner, stream=stream, on_superseded=on_superseded)

        if previous is not None and previous.owner != owner and previous.on_superseded is not None:
            try:
                await previous.on_superseded()
            except Exception as exc:
                logger.warning("superseded notification failed | user_id=%s owner=%s err=%s", user_id, previous.owner, exc)

    async def send(self, user_id: str, owner: str, chunk: bytes) -> bool:
        lease = self._leases.get(user_id)
        if lease is None or lease.owner != owner:
            return False
        lease.stream.send_audio(chunk)
        return True

    async def close(self, user_id: str, owner: str) -> None:
        async with self._lock:
            lease = self._leases.get(user_id)
            if lease is None or lease.owner != owner:
                return
            del self._leases[user_id]
        await lease.stream.close()
