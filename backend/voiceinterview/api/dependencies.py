import logging

from fastapi import HTTPException, Request

from core.state import Role
from voiceinterview.auth import get_claims_async
from voiceinterview.interview.events import InterviewEmitter
from voiceinterview.interview.orchestrator import TerminateCallback, TurnOrchestrator
from voiceinterview.interview.providers import LanguageModel, SpeechToText, TextToSpeech
from voiceinterview.services.llm_service import LanguageModelService
from voiceinterview.services.stt_streams import SpeechStreamRegistry
from voiceinterview.services.tts_service import EdgeSpeechSynthesizer
from voiceinterview.session.budget import SessionBudgetManager
from voiceinterview.session.models import UserAccount
from voiceinterview.session.rate_limit import StartRateLimiter
from voiceinterview.session.user_store import LocalUserStore, UserStore, build_user_store

logger = logging.getLogger("dependencies")

try:
    user_store: UserStore = build_user_store()
    logger.info("User store initialized: %s", user_store.__class__.__name__)
except RuntimeError as user_store_exc:
    user_store = LocalUserStore()
    logger.warning(
        "User store fallback to LocalUserStore due to init error: %s",
        user_store_exc,
    )

budget_manager = SessionBudgetManager(user_store)
start_rate_limiter = StartRateLimiter()


class InterviewDependencyProvider:
    """Builds the per-connection collaborators. Tests swap in a subclass."""

    def __init__(self):
        self._stt: SpeechToText | None = None
        self._llm: LanguageModel | None = None
        self._tts: TextToSpeech | None = None

    def get_budget_manager(self) -> SessionBudgetManager:
        return budget_manager

    def get_start_rate_limiter(self) -> StartRateLimiter:
        return start_rate_limiter

    def create_stt(self) -> SpeechToText:
        if self._stt is None:
            self._stt = SpeechStreamRegistry()
        return self._stt

    def create_llm(self) -> LanguageModel:
        if self._llm is None:
            self._llm = LanguageModelService()
        return self._llm

    def create_tts(self) -> TextToSpeech:
        if self._tts is None:
            self._tts = EdgeSpeechSynthesizer()
        return self._tts

    def create_orchestrator(
        self,
        user_id: str,
        emitter: InterviewEmitter,
        connection_id: str,
        on_terminate: TerminateCallback,
    ) -> TurnOrchestrator:
        return TurnOrchestrator(
            user_id,
            emitter,
            self.create_stt(),
            self.create_llm(),
            self.create_tts(),
            connection_id=connection_id,
            on_terminate=on_terminate,
        )


dependency_provider = InterviewDependencyProvider()


def get_dependency_provider() -> InterviewDependencyProvider:
    return dependency_provider


def set_dependency_provider(provider: InterviewDependencyProvider) -> InterviewDependencyProvider:
    global dependency_provider
    previous = dependency_provider
    dependency_provider = provider
    return previous


async def get_current_account(request: Request) -> UserAccount:
    """Verified caller's account, created on first sight."""
    claims = await get_claims_async(request)
    account, _ = await get_dependency_provider().get_budget_manager().ensure_user(
        str(claims["sub"]),
        email=claims.get("email"),
        display_name=claims.get("name"),
    )
    return account


def require_role(*roles: Role):
    allowed = {Role.parse(role) for role in roles}

    async def _dependency(request: Request) -> UserAccount:
        account = await get_current_account(request)
        if account.role not in allowed:
            raise HTTPException(403, "Forbidden")
        return account

    return _dependency
