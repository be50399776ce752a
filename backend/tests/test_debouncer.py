import asyncio

import pytest

from voiceinterview.interview.debouncer import TranscriptDebouncer

SHORT = 0.05
LONG = 0.15


def _debouncer(completed: list[str]) -> TranscriptDebouncer:
    async def _on_turn(text: str) -> None:
        completed.append(text)

    return TranscriptDebouncer(_on_turn, short_wait_sec=SHORT, long_wait_sec=LONG)


@pytest.mark.asyncio
async def test_interim_fragments_keep_resetting_timer():
    completed: list[str] = []
    debouncer = _debouncer(completed)

    debouncer.add_fragment("I think the answer", is_final=True)
    for _ in range(6):
        await asyncio.sleep(LONG / 3)
        debouncer.add_fragment("is consistent hashing", is_final=False)
    assert completed == []

    await asyncio.sleep(LONG + 0.05)
    assert completed == ["I think the answer"]
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_only_final_fragments_are_buffered():
    completed: list[str] = []
    debouncer = _debouncer(completed)

    debouncer.add_fragment("hello wor", is_final=False)
    debouncer.add_fragment("Hello world.", is_final=True)
    debouncer.add_fragment("ignored interim", is_final=False)

    await asyncio.sleep(LONG + 0.05)
    assert completed == ["Hello world."]
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_wait_interval_depends_on_trailing_punctuation():
    debouncer = _debouncer([])

    debouncer.add_fragment("so the cache", is_final=True)
    assert debouncer.wait_interval() == LONG

    debouncer.add_fragment("is invalidated.", is_final=True)
    assert debouncer.wait_interval() == SHORT
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_punctuated_turn_completes_after_short_wait():
    completed: list[str] = []
    debouncer = _debouncer(completed)

    debouncer.add_fragment("That is my answer.", is_final=True)
    await asyncio.sleep(SHORT + 0.03)
    assert completed == ["That is my answer."]
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_empty_buffer_never_completes_a_turn():
    completed: list[str] = []
    debouncer = _debouncer(completed)

    debouncer.add_fragment("", is_final=True)
    debouncer.add_fragment("um", is_final=False)
    await asyncio.sleep(LONG + 0.05)
    assert completed == []
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_flush_drains_immediately():
    completed: list[str] = []
    debouncer = _debouncer(completed)

    debouncer.add_fragment("first part", is_final=True)
    debouncer.add_fragment("second part", is_final=True)
    await debouncer.flush(reason="max_speech")

    assert completed == ["first part second part"]
    assert debouncer.buffered_text == ""
    assert debouncer.pending is False


@pytest.mark.asyncio
async def test_fragment_during_turn_starts_new_buffer():
    completed: list[str] = []
    release = asyncio.Event()

    async def _slow_turn(text: str) -> None:
        completed.append(text)
        await release.wait()

    debouncer = TranscriptDebouncer(_slow_turn, short_wait_sec=SHORT, long_wait_sec=LONG)
    debouncer.add_fragment("Question one.", is_final=True)
    await asyncio.sleep(SHORT + 0.03)
    assert completed == ["Question one."]

    debouncer.add_fragment("Question two.", is_final=True)
    assert debouncer.buffered_text == "Question two."
    release.set()
    await asyncio.sleep(SHORT + 0.03)
    assert completed == ["Question one.", "Question two."]
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_reset_discards_pending_turn():
    completed: list[str] = []
    debouncer = _debouncer(completed)

    debouncer.add_fragment("never sent.", is_final=True)
    debouncer.reset()
    await asyncio.sleep(SHORT + 0.05)
    assert completed == []
