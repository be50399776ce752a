# backend/core/state.py

from enum import Enum


class TurnState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    THINKING = "THINKING"
    SPEAKING = "SPEAKING"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    MENTOR = "mentor"

    @classmethod
    def parse(cls, value) -> "Role":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.USER
