"""
Session budget manager.

Owns the authoritative per-user interview lock and daily time accounting.
Every operation runs as one atomic read-modify-write against the user store,
so two tabs racing on Start/End cannot lose or double-count time. Durations
are always computed from the server clock; nothing the client sends is
trusted for accounting.
"""

from __future__ import annotations

import logging
import math
import secrets
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable

from core.config import BUDGET, BudgetConfig
from voiceinterview.errors import BudgetExceeded, SessionDurationExceeded
from voiceinterview.session.models import UserAccount
from voiceinterview.session.user_store import UserStore

logger = logging.getLogger("session_budget")

Clock = Callable[[], float]


def _utc_today(now_ts: float) -> date:
    return datetime.fromtimestamp(now_ts, tz=timezone.utc).date()


@dataclass
class StartResult:
    session_id: str
    reconciled_seconds: int = 0
    previous_session_id: str | None = None
    previous_was_zombie: bool = False


@dataclass
class EndResult:
    ended: bool
    duration_seconds: int = 0
    daily_time_used_seconds: int = 0


class SessionBudgetManager:
    def __init__(self, store: UserStore, config: BudgetConfig = BUDGET, clock: Clock | None = None):
        self.store = store
        self.config = config
        self._clock = clock or time.time

    def now(self) -> float:
        return float(self._clock())

    def _new_session_id(self, now_ts: float) -> str:
        return f"sess_{int(now_ts * 1000)}_{secrets.token_hex(4)}"

    def _apply_daily_reset(self, account: UserAccount, now_ts: float) -> None:
        today = _utc_today(now_ts)
        if account.last_reset_date != today:
            if account.daily_time_used_seconds:
                logger.info(
                    "daily budget reset | user_id=%s previous_used=%s",
                    account.id,
                    account.daily_time_used_seconds,
                )
            account.daily_time_used_seconds = 0
            account.last_reset_date = today

    def is_zombie(self, account: UserAccount, now_ts: float | None = None) -> bool:
        if not account.has_active_session:
            return False
        reference = account.last_heartbeat_at or account.current_session_start_time or 0.0
        current = self.now() if now_ts is None else now_ts
        return (current - reference) > self.config.zombie_threshold_sec

    @staticmethod
    def _elapsed_seconds(account: UserAccount, now_ts: float) -> int:
        started = account.current_session_start_time
        if started is None:
            return 0
        return max(0, math.ceil(now_ts - started))

    @staticmethod
    def _clear_lock(account: UserAccount) -> None:
        account.active_session_id = None
        account.current_session_start_time = None

    async def ensure_user(self, user_id: str, email: str | None = None, display_name: str | None = None) -> tuple[UserAccount, bool]:
        now_ts = self.now()
        account, created = await self.store.get_or_create(
            UserAccount(
                id=user_id,
                daily_time_limit_seconds=self.config.daily_time_budget_sec,
                last_reset_date=_utc_today(now_ts),
                email=email,
                display_name=display_name,
                created_at=now_ts,
                last_login_at=now_ts,
            )
        )
        if created:
            logger.info("user created | user_id=%s", user_id)
            return account, True

        def _touch_login(item: UserAccount) -> UserAccount:
            self._apply_daily_reset(item, now_ts)
            item.last_login_at = now_ts
            if email and not item.email:
                item.email = email
            if display_name and not item.display_name:
                item.display_name = display_name
            return item.copy()

        return await self.store.update(user_id, _touch_login), False

    async def start(self, user_id: str) -> StartResult:
        now_ts = self.now()

        def _start(account: UserAccount) -> StartResult:
            self._apply_daily_reset(account, now_ts)
            limit = int(account.daily_time_limit_seconds)
            reconciled = 0
            previous_id = account.active_session_id
            zombie = False

            if account.has_active_session:
                # Charge the abandoned session instead of discarding it; the
                # replacement session is granted even if this hits the cap.
                zombie = self.is_zombie(account, now_ts)
                reconciled = self._elapsed_seconds(account, now_ts)
                account.daily_time_used_seconds = min(limit, account.daily_time_used_seconds + reconciled)
                self._clear_lock(account)
            elif account.daily_time_used_seconds >= limit:
                raise BudgetExceeded("Daily interview time limit reached. Please come back tomorrow.")

            session_id = self._new_session_id(now_ts)
            account.active_session_id = session_id
            account.current_session_start_time = now_ts
            account.last_heartbeat_at = now_ts
            return StartResult(
                session_id=session_id,
                reconciled_seconds=reconciled,
                previous_session_id=previous_id,
                previous_was_zombie=zombie,
            )

        result = await self.store.update(user_id, _start)
        if result.previous_session_id:
            logger.warning(
                "superseded session reconciled | user_id=%s previous=%s charged=%ss zombie=%s",
                user_id,
                result.previous_session_id,
                result.reconciled_seconds,
                result.previous_was_zombie,
            )
        logger.info("session started | user_id=%s session_id=%s", user_id, result.session_id)
        return result

    async def heartbeat(self, user_id: str) -> bool:
        """Refresh liveness. Returns False when there is no active session.

        Raises SessionDurationExceeded after force-ending a session that ran
        past the hard ceiling.
        """
        now_ts = self.now()

        def _beat(account: UserAccount) -> tuple[bool, bool]:
            self._apply_daily_reset(account, now_ts)
            if not account.has_active_session:
                return False, False
            account.last_heartbeat_at = now_ts
            exceeded = self._elapsed_seconds(account, now_ts) > self.config.max_session_duration_sec
            return True, exceeded

        active, exceeded = await self.store.update(user_id, _beat)
        if not active:
            logger.info("heartbeat without active session | user_id=%s", user_id)
            return False
        if exceeded:
            logger.warning("session exceeded hard ceiling | user_id=%s", user_id)
            await self.end(user_id)
            raise SessionDurationExceeded("Session exceeded maximum duration")
        return True

    async def end(self, user_id: str, session_id: str | None = None) -> EndResult:
        """End the active session. With ``session_id``, only that session is ended."""
        now_ts = self.now()

        def _end(account: UserAccount) -> EndResult:
            self._apply_daily_reset(account, now_ts)
            if not account.has_active_session or (session_id and account.active_session_id != session_id):
                return EndResult(ended=False, daily_time_used_seconds=account.daily_time_used_seconds)
            duration = self._elapsed_seconds(account, now_ts)
            account.daily_time_used_seconds = min(
                int(account.daily_time_limit_seconds),
                account.daily_time_used_seconds + duration,
            )
            self._clear_lock(account)
            return EndResult(
                ended=True,
                duration_seconds=duration,
                daily_time_used_seconds=account.daily_time_used_seconds,
            )

        result = await self.store.update(user_id, _end)
        if not result.ended:
            logger.warning("end requested without matching active session | user_id=%s session_id=%s", user_id, session_id)
        else:
            logger.info(
                "session ended | user_id=%s duration=%ss used_today=%ss",
                user_id,
                result.duration_seconds,
                result.daily_time_used_seconds,
            )
        return result
