import asyncio
import os
import sys
from pathlib import Path

# Module-level config is read at import time, so the test environment has to
# exist before anything under backend/ is imported.
os.environ.setdefault("ENV", "development")
os.environ.setdefault("QA_MODE", "true")
os.environ.setdefault("AUTH_JWT_SECRET", "pytest-secret")
os.environ.setdefault("USE_REDIS_USER_STORE", "false")
os.environ.setdefault("LLM_API_KEY", "test-key")

import pytest
from jose import jwt


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from voiceinterview.api import dependencies  # noqa: E402
from voiceinterview.api.dependencies import InterviewDependencyProvider  # noqa: E402
from voiceinterview.interview.events import InterviewEmitter  # noqa: E402
from voiceinterview.session.budget import SessionBudgetManager  # noqa: E402
from voiceinterview.session.rate_limit import StartRateLimiter  # noqa: E402
from voiceinterview.session.user_store import LocalUserStore  # noqa: E402


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


class RecordingEmitter(InterviewEmitter):
    def __init__(self):
        self.events: list[dict] = []
        super().__init__(send_fn=self._record)

    async def _record(self, payload: dict) -> None:
        self.events.append(payload)

    def of_type(self, event_type: str) -> list[dict]:
        return [item for item in self.events if item.get("type") == event_type]

    def types(self) -> list[str]:
        return [item["type"] for item in self.events]


class FakeSpeechToText:
    def __init__(self, fail_open: bool = False):
        self.fail_open = fail_open
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.sent: list[bytes] = []
        self.callbacks: dict = {}

    async def open(self, user_id, owner, on_transcript, on_superseded=None):
        if self.fail_open:
            raise RuntimeError("stt unavailable")
        self.opened.append(user_id)
        self.callbacks[user_id] = on_transcript

    async def send(self, user_id, owner, chunk):
        self.sent.append(chunk)
        return True

    async def close(self, user_id, owner):
        self.closed.append(user_id)
        self.callbacks.pop(user_id, None)


class FakeLiveStream:
    """Stands in for a DeepgramStream inside SpeechStreamRegistry."""

    def __init__(self, on_transcript):
        self.on_transcript = on_transcript
        self.connected = False
        self.closed = False
        self.audio: list[bytes] = []

    async def connect(self):
        self.connected = True

    def send_audio(self, chunk):
        self.audio.append(chunk)

    async def close(self):
        self.closed = True


class FakeLanguageModel:
    def __init__(self, tokens: list[str] | None = None, error: Exception | None = None, gate: asyncio.Event | None = None):
        self.tokens = tokens if tokens is not None else ["Tell me ", "about ", "caching. ", "Why ", "does it ", "help?"]
        self.error = error
        self.gate = gate
        self.calls: list[dict] = []

    async def complete(self, system_prompt, history, user_text):
        return "".join([token async for token in self.stream(system_prompt, history, user_text)])

    async def stream(self, system_prompt, history, user_text):
        self.calls.append({"system_prompt": system_prompt, "history": list(history), "user_text": user_text})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        for token in self.tokens:
            await asyncio.sleep(0)
            yield token


class FakeTextToSpeech:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.requests: list[str] = []

    async def synthesize(self, text, voice=None):
        self.requests.append(text)
        if self.error is not None:
            raise self.error
        await asyncio.sleep(0)
        return f"mp3:{text}".encode("utf-8")


class FakeProvider(InterviewDependencyProvider):
    def __init__(self):
        super().__init__()
        self.clock = FakeClock()
        self.store = LocalUserStore()
        self.budget = SessionBudgetManager(self.store, clock=self.clock)
        self.limiter = StartRateLimiter(min_interval_sec=5, clock=self.clock)
        self.stt = FakeSpeechToText()
        self.llm = FakeLanguageModel()
        self.tts = FakeTextToSpeech()

    def get_budget_manager(self):
        return self.budget

    def get_start_rate_limiter(self):
        return self.limiter

    def create_stt(self):
        return self.stt

    def create_llm(self):
        return self.llm

    def create_tts(self):
        return self.tts


def make_token(sub: str = "pytest-user", **claims) -> str:
    payload = {"sub": sub, "iat": 0}
    payload.update(claims)
    return jwt.encode(payload, os.environ["AUTH_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def provider():
    fake = FakeProvider()
    previous = dependencies.set_dependency_provider(fake)
    yield fake
    dependencies.set_dependency_provider(previous)
