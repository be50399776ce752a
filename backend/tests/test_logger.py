import json
import logging

from core.logger import log_event
from core.state import TurnState


def test_log_event_redacts_speech_and_audio(caplog):
    caplog.set_level(logging.INFO, logger="voiceinterview.events")

    log_event(
        "turn_orchestrator",
        "turn_started",
        "conn-1",
        user_text="my secret answer",
        audio=b"\x00" * 12,
        state=TurnState.THINKING,
        nested={"transcript": "abc", "count": 2},
    )

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["component"] == "turn_orchestrator"
    assert payload["connection_id"] == "conn-1"
    assert payload["user_text"] == {"redacted": True, "length": 16}
    assert payload["audio"] == {"bytes": 12}
    assert payload["state"] == "THINKING"
    assert payload["nested"] == {"transcript": {"redacted": True, "length": 3}, "count": 2}
