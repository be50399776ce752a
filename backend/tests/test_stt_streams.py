import asyncio
from types import SimpleNamespace

import pytest

from conftest import FakeLiveStream
from core.config import SttConfig
from voiceinterview.services.deepgram_service import DeepgramStream, build_live_options
from voiceinterview.services.stt_streams import SpeechStreamRegistry


def _registry(created: list[FakeLiveStream]) -> SpeechStreamRegistry:
    def _factory(callback):
        stream = FakeLiveStream(callback)
        created.append(stream)
        return stream

    return SpeechStreamRegistry(stream_factory=_factory)


async def _noop(text, is_final):
    return None


@pytest.mark.asyncio
async def test_registry_keeps_one_stream_per_user():
    created: list[FakeLiveStream] = []
    registry = _registry(created)
    await registry.open("u1", "conn-1", _noop)
    await registry.open("u1", "conn-1", _noop)

    assert len(created) == 2
    assert created[0].closed is True
    assert created[1].connected is True
    assert len(registry) == 1

    assert await registry.send("u1", "conn-1", b"abc") is True
    assert await registry.send("nobody", "conn-1", b"zzz") is False
    assert created[1].audio == [b"abc"]

    await registry.close("u1", "conn-1")
    await registry.close("u1", "conn-1")
    assert created[1].closed is True
    assert "u1" not in registry


@pytest.mark.asyncio
async def test_only_the_owner_can_use_or_close_a_stream():
    created: list[FakeLiveStream] = []
    superseded: list[str] = []

    async def _first_superseded():
        superseded.append("conn-1")

    registry = _registry(created)
    await registry.open("u1", "conn-1", _noop, _first_superseded)
    await registry.open("u1", "conn-2", _noop)

    assert superseded == ["conn-1"]
    assert created[0].closed is True

    assert await registry.send("u1", "conn-1", b"stale") is False
    await registry.close("u1", "conn-1")
    assert created[1].closed is False
    assert created[1].audio == []

    assert await registry.send("u1", "conn-2", b"live") is True
    assert created[1].audio == [b"live"]


@pytest.mark.asyncio
async def test_failing_superseded_callback_does_not_break_open():
    created: list[FakeLiveStream] = []

    async def _broken():
        raise RuntimeError("socket gone")

    registry = _registry(created)
    await registry.open("u1", "conn-1", _noop, _broken)
    await registry.open("u1", "conn-2", _noop)

    assert "u1" in registry
    assert created[1].connected is True


def test_live_options_leave_encoding_to_container_detection_by_default():
    options = build_live_options(SttConfig())

    assert options.model == "nova-2"
    assert options.language == "en-IN"
    assert options.interim_results is True
    assert options.smart_format is True
    assert options.endpointing == 300
    assert options.encoding is None
    assert options.sample_rate is None


def test_live_options_declare_raw_pcm_when_configured():
    options = build_live_options(SttConfig(encoding="linear16", sample_rate=16000))

    assert options.encoding == "linear16"
    assert options.sample_rate == 16000
    assert options.channels == 1


def _result(text: str, is_final: bool):
    return SimpleNamespace(
        channel=SimpleNamespace(alternatives=[SimpleNamespace(transcript=text)]),
        is_final=is_final,
    )


@pytest.mark.asyncio
async def test_deepgram_events_are_delivered_in_order_on_the_loop():
    received: list[tuple[str, bool]] = []

    async def _on_transcript(text, is_final):
        received.append((text, is_final))

    stream = DeepgramStream(_on_transcript, enabled=False)
    stream._loop = asyncio.get_running_loop()  # test-only wiring in place of connect()
    stream.active = True
    stream._pump_task = asyncio.create_task(stream._pump())

    stream._on_transcript(None, _result("hello", False))
    stream._on_transcript(None, _result("", False))
    stream._on_transcript(None, _result("hello world.", True))
    await asyncio.sleep(0.01)

    assert received == [("hello", False), ("hello world.", True)]
    await stream.close()
    assert stream.is_active() is False


@pytest.mark.asyncio
async def test_disabled_stream_ignores_audio():
    async def _on_transcript(text, is_final):
        return None

    stream = DeepgramStream(_on_transcript, enabled=False)
    await stream.connect()
    stream.send_audio(b"abc")
    assert stream.connection is None
    await stream.close()
