import asyncio
import logging

from deepgram import DeepgramClient, LiveOptions, LiveTranscriptionEvents

from core.config import DEEPGRAM_API_KEY, QA_MODE, STT, SttConfig
from voiceinterview.interview.providers import TranscriptCallback

logger = logging.getLogger("deepgram_service")


def build_live_options(config: SttConfig) -> LiveOptions:
    fields = dict(
        model=config.model,
        language=config.language,
        interim_results=True,
        punctuate=True,
        smart_format=True,
        endpointing=config.endpointing_ms,
    )
    # Raw PCM needs both declared; containers are detected from the stream header.
    if config.encoding:
        fields["encoding"] = config.encoding
        fields["channels"] = 1
    if config.sample_rate:
        fields["sample_rate"] = config.sample_rate
    return LiveOptions(**fields)


class DeepgramStream:
    """
    One live Deepgram transcription socket.

    The SDK fires transcript events from its own thread; they are handed to
    the event loop through a queue and delivered to ``on_transcript`` in
    arrival order by a single pump task.
    """

    def __init__(
        self,
        on_transcript: TranscriptCallback,
        config: SttConfig = STT,
        api_key: str | None = None,
        enabled: bool | None = None,
    ):
        self.config = config
        self.on_transcript = on_transcript
        self.enabled = (not QA_MODE) if enabled is None else enabled
        self.client = None
        if self.enabled:
            key = api_key or DEEPGRAM_API_KEY
            if not key:
                logger.error("[DG] DEEPGRAM_API_KEY not set - speech-to-text will NOT work")
                self.enabled = False
            else:
                self.client = DeepgramClient(key)
        self.connection = None
        self.active = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pump_task: asyncio.Task | None = None

    def is_active(self) -> bool:
        return self.active

    async def connect(self) -> None:
        if not self.enabled:
            logger.info("[QA_MODE] Deepgram stream disabled")
            return
        if self.connection:
            return

        self._loop = asyncio.get_running_loop()
        self.connection = self.client.listen.live.v("1")
        self.connection.on(LiveTranscriptionEvents.Transcript, self._on_transcript)
        self.connection.on(LiveTranscriptionEvents.Metadata, self._on_metadata)
        self.connection.on(LiveTranscriptionEvents.Error, self._on_error)

        options = build_live_options(self.config)
        # start() is sync in the 3.x live client
        started = self.connection.start(options)
        if started is False:
            self.connection = None
            raise RuntimeError("Deepgram live connection failed to start")

        self.active = True
        self._pump_task = asyncio.create_task(self._pump())
        logger.info("[DG] stream started | model=%s language=%s", self.config.model, self.config.language)

    def send_audio(self, audio_bytes: bytes) -> None:
        if not self.active or not self.connection:
            return
        if isinstance(audio_bytes, bytearray):
            audio_bytes = bytes(audio_bytes)
        self.connection.send(audio_bytes)

    # ================= EVENT HANDLERS (SDK thread) =================

    def _on_transcript(self, client, result, **kwargs):
        if not self.active or self._loop is None:
            return
        try:
            channel = result.channel
            if not channel or not channel.alternatives:
                return
            text = str(channel.alternatives[0].transcript or "").strip()
            is_final = bool(result.is_final)
        except AttributeError as exc:
            logger.error("Deepgram transcript parse error: %s", exc)
            return
        if not text and not is_final:
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (text, is_final))

    def _on_metadata(self, client, metadata, **kwargs):
        logger.info("Deepgram metadata received: %s", metadata)

    def _on_error(self, client, error, **kwargs):
        logger.error("Deepgram error event: %s", error)

    async def _pump(self) -> None:
        while True:
            text, is_final = await self._queue.get()
            try:
                await self.on_transcript(text, is_final)
            except Exception:
                logger.exception("transcript handler failed")

    async def close(self) -> None:
        """Graceful shutdown. Safe to call multiple times."""
        self.active = False
        if self._pump_task and not self._pump_task.done():
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        self._pump_task = None

        if self.connection:
            try:
                self.connection.finish()
            except Exception as exc:
                logger.warning("Deepgram finish() ignored during cleanup: %s", exc)
            finally:
                self.connection = None
            logger.info("[DG] stream closed")
