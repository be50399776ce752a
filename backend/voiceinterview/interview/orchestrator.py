"""
Turn orchestrator.

One instance per live connection. Owns the IDLE -> LISTENING -> THINKING ->
SPEAKING loop: audio goes through the safety guard to STT, transcript
fragments go through the debouncer, a completed turn is sent to the language
model and the streamed reply is spoken sentence by sentence.

Provider failures never escape a turn. They become an ``error`` event and the
state falls back to LISTENING. Termination is final: after it, nothing is
emitted except the ``session:end`` notice itself.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from core.config import TTS, TtsConfig
from core.logger import log_event
from core.state import TurnState
from voiceinterview.errors import GenerationFailure
from voiceinterview.interview.debouncer import TranscriptDebouncer
from voiceinterview.interview.events import InterviewEmitter
from voiceinterview.interview.history import ASSISTANT, ConversationHistory
from voiceinterview.interview.prompts import (
    GENERATION_FALLBACK,
    GREETING,
    GREETING_AUDIO_FAILURE,
    INTERVIEWER_PROMPT,
    MAX_SPEECH_NOTICE,
    SILENCE_NOTICE,
    SUPERSEDED_MESSAGE,
    VIOLATION_TERMINATION,
    VIOLATION_WARNING,
)
from voiceinterview.interview.providers import LanguageModel, SpeechToText, TextToSpeech
from voiceinterview.interview.safety import SafetyGuard, SpeechActivityTracker, SpeechSignal
from voiceinterview.interview.sentences import SentenceSegmenter
from voiceinterview.interview.violations import ViolationOutcome, ViolationTracker
from voiceinterview.system_metrics import increment_metric, observe_first_audio_ms

logger = logging.getLogger("turn_orchestrator")

TerminateCallback = Callable[[str], Awaitable[None]]

STATUS_MESSAGES = {
    TurnState.IDLE: "Interview ended",
    TurnState.LISTENING: "Listening",
    TurnState.THINKING: "Thinking",
    TurnState.SPEAKING: "Interviewer is speaking",
}


class TurnOrchestrator:
    def __init__(
        self,
        user_id: str,
        emitter: InterviewEmitter,
        stt: SpeechToText,
        llm: LanguageModel,
        tts: TextToSpeech,
        *,
        connection_id: str = "",
        guard: SafetyGuard | None = None,
        activity: SpeechActivityTracker | None = None,
        violations: ViolationTracker | None = None,
        history: ConversationHistory | None = None,
        debouncer: TranscriptDebouncer | None = None,
        on_terminate: TerminateCallback | None = None,
        tts_config: TtsConfig = TTS,
        system_prompt: str = INTERVIEWER_PROMPT,
        greeting: str = GREETING,
    ):
        self.user_id = user_id
        self.connection_id = connection_id or user_id
        self.emitter = emitter
        self.stt = stt
        self.llm = llm
        self.tts = tts
        self.guard = guard or SafetyGuard()
        self.activity = activity or SpeechActivityTracker()
        self.violations = violations or ViolationTracker()
        self.history = history or ConversationHistory()
        self.debouncer = debouncer or TranscriptDebouncer(self._on_turn_complete)
        self.on_terminate = on_terminate
        self.tts_config = tts_config
        self.system_prompt = system_prompt
        self.greeting = greeting

        self.state = TurnState.IDLE
        self.started = False
        self.terminated = False
        self.termination_reason: str | None = None
        self._stt_open = False
        self._turn_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    def _log_event(self, event: str, **fields) -> None:
        log_event("turn_orchestrator", event, self.connection_id, user_id=self.user_id, **fields)

    def _create_task(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _set_state(self, state: TurnState, message: str | None = None) -> None:
        if self.terminated:
            return
        previous = self.state
        self.state = state
        if previous != state:
            self._log_event("state_transition", previous=previous.value, state=state.value)
        await self.emitter.status(state, message or STATUS_MESSAGES[state])

    # ================= LIFECYCLE =================

    async def begin_interview(self) -> bool:
        if self.terminated or self.started:
            return False
        await self.stt.open(self.user_id, self.connection_id, self.handle_transcript, self._on_stt_superseded)
        self.started = True
        self._stt_open = True
        self.activity.reset()
        self.history.append(ASSISTANT, self.greeting)

        # The greeting renders in the background so audio arriving right
        # after interview:start is already accepted in LISTENING.
        await self._set_state(TurnState.SPEAKING)
        self._create_task(self._speak_greeting())
        await self._set_state(TurnState.LISTENING)
        self._log_event("interview_started")
        return True

    async def _speak_greeting(self) -> None:
        try:
            await self._speak(self.greeting, 0)
        except Exception as exc:
            increment_metric("provider_failures")
            self._log_event("greeting_failed", error=type(exc).__name__)
            logger.warning("greeting synthesis failed | user_id=%s err=%s", self.user_id, exc)
            if not self.terminated:
                await self.emitter.error(GREETING_AUDIO_FAILURE)

    async def _close_stt(self) -> None:
        if not self._stt_open:
            return
        self._stt_open = False
        try:
            await self.stt.close(self.user_id, self.connection_id)
        except Exception as exc:
            logger.warning("stt close failed | user_id=%s err=%s", self.user_id, exc)

    async def _on_stt_superseded(self) -> None:
        # Another connection of this user now owns the stream; this interview cannot hear anymore.
        self._stt_open = False
        await self.terminate("superseded", SUPERSEDED_MESSAGE)

    async def terminate(self, reason: str, message: str) -> None:
        if self.terminated:
            return
        self.terminated = True
        self.termination_reason = reason
        self.state = TurnState.IDLE
        increment_metric("terminations")
        self._log_event("terminated", reason=reason)
        # In-flight provider calls finish on their own; their output is dropped.
        self.debouncer.reset()
        await self._close_stt()
        await self.emitter.session_end(reason, message)
        if self.on_terminate is not None:
            await self.on_terminate(reason)

    async def close(self) -> None:
        """Release everything owned by this connection. Safe to call twice."""
        self.terminated = True
        self.state = TurnState.IDLE
        await self.debouncer.aclose()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._close_stt()

    # ================= AUDIO INGEST =================

    async def handle_audio_chunk(self, chunk: bytes) -> bool:
        """Forward one audio frame to STT. Returns False when the frame was dropped."""
        if self.terminated or self.state != TurnState.LISTENING:
            return False
        if not self.guard.accept_chunk(chunk):
            increment_metric("audio_chunks_dropped")
            return False

        signal = self.activity.observe_chunk(chunk)
        if not await self.stt.send(self.user_id, self.connection_id, chunk):
            increment_metric("audio_chunks_dropped")
            return False

        if signal == SpeechSignal.MAX_DURATION_EXCEEDED:
            self._log_event("max_speech_exceeded")
            await self.emitter.status(self.state, MAX_SPEECH_NOTICE)
            self.activity.end_utterance()
            self._create_task(self.debouncer.flush(reason="max_speech"))
        elif signal == SpeechSignal.SILENCE_TIMEOUT:
            self._log_event("silence_timeout")
            await self.emitter.status(self.state, SILENCE_NOTICE)
        return True

    async def handle_transcript(self, text: str, is_final: bool) -> None:
        if self.terminated:
            return
        if str(text or "").strip():
            self.activity.note_voice()
        self.debouncer.add_fragment(text, is_final)

    # ================= TURN =================

    async def _on_turn_complete(self, text: str) -> None:
        async with self._turn_lock:
            if self.terminated:
                return
            await self._run_turn(text)

    async def _run_turn(self, raw_text: str) -> None:
        text = self.guard.truncate_transcript(raw_text)
        self.activity.end_utterance()
        turn_started = time.monotonic()
        await self.emitter.user_transcript(text)
        await self._set_state(TurnState.THINKING)
        self._log_event("turn_started", user_text=text)

        spoken: list[str] = []
        try:
            segmenter = SentenceSegmenter()
            async for token in self.llm.stream(self.system_prompt, self.history.as_messages(), text):
                if self.terminated:
                    break
                for sentence in segmenter.feed(token):
                    await self._speak_reply_sentence(sentence, spoken, turn_started)
            tail = segmenter.flush()
            if tail and not self.terminated:
                await self._speak_reply_sentence(tail, spoken, turn_started)

            if self.terminated:
                return
            if not spoken:
                raise GenerationFailure("Language model returned an empty reply")
            self.history.append_turn(text, " ".join(spoken))
            increment_metric("turns_completed")
            self._log_event("turn_completed", sentences=len(spoken), latency_ms=round((time.monotonic() - turn_started) * 1000, 1))
        except Exception as exc:
            increment_metric("provider_failures")
            self._log_event("turn_failed", error=type(exc).__name__, sentences=len(spoken))
            logger.warning("turn failed | user_id=%s err=%s", self.user_id, exc)
            if not self.terminated:
                await self.emitter.error(GENERATION_FALLBACK)
        finally:
            await self._set_state(TurnState.LISTENING)

    async def _speak_reply_sentence(self, sentence: str, spoken: list[str], turn_started: float) -> None:
        if not spoken:
            await self._set_state(TurnState.SPEAKING)
        index = len(spoken)
        spoken.append(sentence)
        if await self._speak(sentence, index) and index == 0:
            observe_first_audio_ms((time.monotonic() - turn_started) * 1000.0)

    async def _speak(self, text: str, index: int) -> bool:
        # Sequential await keeps audio events in generation order.
        audio = await asyncio.wait_for(
            self.tts.synthesize(text, self.tts_config.voice),
            timeout=self.tts_config.timeout_sec,
        )
        if self.terminated:
            return False
        await self.emitter.audio(text, audio, index)
        return True

    # ================= INTEGRITY =================

    async def handle_violation(self) -> ViolationOutcome:
        if self.terminated:
            return ViolationOutcome.TERMINATE
        outcome = self.violations.record()
        increment_metric("violations")
        self._log_event("violation", count=self.violations.count, outcome=outcome.value)
        if outcome == ViolationOutcome.WARN:
            await self.emitter.warning(VIOLATION_WARNING, self.violations.count)
        else:
            await self.terminate("integrity_violation", VIOLATION_TERMINATION)
        return outcome
