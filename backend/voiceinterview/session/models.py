from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date

from core.config import BUDGET
from core.state import Role


@dataclass
class UserAccount:
    id: str
    role: Role = Role.USER
    daily_time_limit_seconds: int = BUDGET.daily_time_budget_sec
    daily_time_used_seconds: int = 0
    last_reset_date: date | None = None
    active_session_id: str | None = None
    current_session_start_time: float | None = None
    last_heartbeat_at: float | None = None
    email: str | None = None
    display_name: str | None = None
    created_at: float = 0.0
    last_login_at: float = 0.0

    @property
    def has_active_session(self) -> bool:
        return self.active_session_id is not None

    @property
    def remaining_seconds(self) -> int:
        return max(0, int(self.daily_time_limit_seconds) - int(self.daily_time_used_seconds))

    def copy(self) -> "UserAccount":
        return replace(self)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["role"] = self.role.value
        data["last_reset_date"] = self.last_reset_date.isoformat() if self.last_reset_date else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UserAccount":
        raw_reset = data.get("last_reset_date")
        start_time = data.get("current_session_start_time")
        heartbeat = data.get("last_heartbeat_at")
        return cls(
            id=str(data["id"]),
            role=Role.parse(data.get("role")),
            daily_time_limit_seconds=int(data.get("daily_time_limit_seconds") or BUDGET.daily_time_budget_sec),
            daily_time_used_seconds=max(0, int(data.get("daily_time_used_seconds") or 0)),
            last_reset_date=date.fromisoformat(raw_reset) if raw_reset else None,
            active_session_id=data.get("active_session_id") or None,
            current_session_start_time=float(start_time) if start_time not in (None, "") else None,
            last_heartbeat_at=float(heartbeat) if heartbeat not in (None, "") else None,
            email=data.get("email") or None,
            display_name=data.get("display_name") or None,
            created_at=float(data.get("created_at") or 0.0),
            last_login_at=float(data.get("last_login_at") or 0.0),
        )

    def public_view(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "email": self.email,
            "displayName": self.display_name,
            "dailyTimeLimitSeconds": int(self.daily_time_limit_seconds),
            "dailyTimeUsedSeconds": int(self.daily_time_used_seconds),
            "remainingSeconds": self.remaining_seconds,
            "activeSessionId": self.active_session_id,
        }
