from voiceinterview.session.budget import EndResult, SessionBudgetManager, StartResult
from voiceinterview.session.models import UserAccount
from voiceinterview.session.rate_limit import StartRateLimiter
from voiceinterview.session.registry import ConnectionRegistry, connection_registry
from voiceinterview.session.user_store import LocalUserStore, RedisUserStore, UserStore, build_user_store

__all__ = [
    "ConnectionRegistry",
    "EndResult",
    "LocalUserStore",
    "RedisUserStore",
    "SessionBudgetManager",
    "StartRateLimiter",
    "StartResult",
    "UserAccount",
    "UserStore",
    "build_user_store",
    "connection_registry",
]
