from __future__ import annotations

from collections import deque

from core.config import SAFETY

USER = "user"
ASSISTANT = "assistant"


class ConversationHistory:
    """Rolling window of the last ``max_messages`` chat messages."""

    def __init__(self, max_messages: int = SAFETY.history_max_messages):
        self.max_messages = max(2, int(max_messages))
        self._messages: deque[dict] = deque(maxlen=self.max_messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, role: str, text: str) -> None:
        text = str(text or "").strip()
        if text:
            self._messages.append({"role": role, "content": text})

    def append_turn(self, user_text: str, assistant_text: str) -> None:
        self.append(USER, user_text)
        self.append(ASSISTANT, assistant_text)

    def as_messages(self) -> list[dict]:
        return [dict(item) for item in self._messages]

    def clear(self) -> None:
        self._messages.clear()
