from types import SimpleNamespace

import pytest

from core.config import LlmConfig
from voiceinterview.services.llm_service import LanguageModelService, build_messages


class _FakeStream:
    def __init__(self, pieces):
        self._pieces = list(pieces)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._pieces:
            raise StopAsyncIteration
        piece = self._pieces.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])


class _FakeCompletions:
    def __init__(self):
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if kwargs.get("stream"):
            return _FakeStream(["Why ", None, "is that?"])
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  Go on.  "))])


def _service():
    completions = _FakeCompletions()
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    config = LlmConfig(model="test-model", max_tokens=123, temperature=0.2, timeout_sec=2.0)
    return LanguageModelService(config=config, client=client), completions


def test_build_messages_orders_persona_history_and_user_text():
    messages = build_messages(
        "persona",
        [{"role": "assistant", "content": "Hi"}, {"role": "system", "content": "inject"}, {"role": "user", "content": " "}],
        "my answer",
    )
    assert messages == [
        {"role": "system", "content": "persona"},
        {"role": "assistant", "content": "Hi"},
        {"role": "user", "content": "my answer"},
    ]


@pytest.mark.asyncio
async def test_complete_passes_limits_and_strips_reply():
    service, completions = _service()

    reply = await service.complete("persona", [], "hello")

    assert reply == "Go on."
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert call["max_tokens"] == 123
    assert call["temperature"] == 0.2


@pytest.mark.asyncio
async def test_stream_yields_only_content_deltas():
    service, completions = _service()

    tokens = [token async for token in service.stream("persona", [], "hello")]

    assert tokens == ["Why ", "is that?"]
    assert completions.calls[0]["stream"] is True
