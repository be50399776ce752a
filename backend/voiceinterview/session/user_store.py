from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, TypeVar

from core.config import REDIS_URL, USE_REDIS_USER_STORE
from voiceinterview.errors import UserNotFound
from voiceinterview.session.models import UserAccount

logger = logging.getLogger("user_store")

T = TypeVar("T")
Mutation = Callable[[UserAccount], T]


class UserStore(Protocol):
    async def get(self, user_id: str) -> UserAccount | None:
        ...

    async def get_or_create(self, account: UserAccount) -> tuple[UserAccount, bool]:
        ...

    async def update(self, user_id: str, mutate: Mutation) -> T:
        """Apply ``mutate`` to the stored account atomically and return its result.

        The mutation receives a working copy; nothing is written if it raises.
        """
        ...


class LocalUserStore:
    def __init__(self):
        self._users: dict[str, UserAccount] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def get(self, user_id: str) -> UserAccount | None:
        async with self._lock_for(user_id):
            account = self._users.get(user_id)
            return account.copy() if account else None

    async def get_or_create(self, account: UserAccount) -> tuple[UserAccount, bool]:
        async with self._lock_for(account.id):
            existing = self._users.get(account.id)
            if existing is not None:
                return existing.copy(), False
            self._users[account.id] = account.copy()
            return account.copy(), True

    async def update(self, user_id: str, mutate: Mutation) -> T:
        async with self._lock_for(user_id):
            current = self._users.get(user_id)
            if current is None:
                raise UserNotFound(f"User {user_id} not found")
            working = current.copy()
            result = mutate(working)
            self._users[user_id] = working
            return result


def _encode(account: UserAccount) -> dict[str, str]:
    return {key: "" if value is None else str(value) for key, value in account.to_dict().items()}


class RedisUserStore:
    """Redis-backed user documents.

    Keys:
    - user:{user_id} (hash)

    Read-modify-write goes through WATCH/MULTI so two connections racing on the
    same user retry instead of overwriting each other.
    """

    def __init__(self, redis_url: str, max_retries: int = 20):
        try:
            import redis.asyncio as redis_async  # type: ignore
            from redis.exceptions import WatchError  # type: ignore
        except Exception as exc:
            raise RuntimeError("redis package not installed; install 'redis' to enable the shared user store") from exc

        self._redis = redis_async.from_url(redis_url, decode_responses=True)
        self._watch_error = WatchError
        self._max_retries = max(1, int(max_retries))

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user:{user_id}"

    async def get(self, user_id: str) -> UserAccount | None:
        data = await self._redis.hgetall(self._key(user_id))
        if not data:
            return None
        return UserAccount.from_dict(data)

    async def get_or_create(self, account: UserAccount) -> tuple[UserAccount, bool]:
        key = self._key(account.id)
        async with self._redis.pipeline(transaction=True) as pipe:
            for _ in range(self._max_retries):
                try:
                    await pipe.watch(key)
                    data = await pipe.hgetall(key)
                    if data:
                        await pipe.unwatch()
                        return UserAccount.from_dict(data), False
                    pipe.multi()
                    pipe.hset(key, mapping=_encode(account))
                    await pipe.execute()
                    return account.copy(), True
                except self._watch_error:
                    logger.info("user create raced | user_id=%s", account.id)
        raise RuntimeError(f"User store contention on {account.id}")

    async def update(self, user_id: str, mutate: Mutation) -> T:
        key = self._key(user_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            for attempt in range(self._max_retries):
                try:
                    await pipe.watch(key)
                    data = await pipe.hgetall(key)
                    if not data:
                        await pipe.unwatch()
                        raise UserNotFound(f"User {user_id} not found")
                    working = UserAccount.from_dict(data)
                    result = mutate(working)
                    pipe.multi()
                    pipe.hset(key, mapping=_encode(working))
                    await pipe.execute()
                    return result
                except self._watch_error:
                    logger.info("user update retry | user_id=%s attempt=%s", user_id, attempt + 1)
        raise RuntimeError(f"User store contention on {user_id}")


def build_user_store() -> UserStore:
    if not USE_REDIS_USER_STORE:
        return LocalUserStore()

    if not REDIS_URL:
        raise RuntimeError("USE_REDIS_USER_STORE=true requires REDIS_URL")
    return RedisUserStore(REDIS_URL)
