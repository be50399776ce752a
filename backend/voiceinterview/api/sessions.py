import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from voiceinterview.api.dependencies import get_dependency_provider
from voiceinterview.auth import get_user_id_async
from voiceinterview.errors import BudgetExceeded, InterviewError, RateLimited, SessionDurationExceeded, UserNotFound
from voiceinterview.system_metrics import increment_metric

logger = logging.getLogger("api.sessions")

router = APIRouter(prefix="/api/session")

_STATUS_BY_ERROR = {
    RateLimited: 429,
    BudgetExceeded: 403,
    UserNotFound: 404,
    SessionDurationExceeded: 409,
}


def _error_response(exc: InterviewError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), 400)
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(max(1, int(round(exc.retry_after))))}
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.message, "code": exc.code},
        headers=headers,
    )


@router.post("/start")
async def start_session(request: Request):
    user_id = await get_user_id_async(request)
    provider = get_dependency_provider()
    try:
        provider.get_start_rate_limiter().check(user_id)
        result = await provider.get_budget_manager().start(user_id)
    except RateLimited as exc:
        increment_metric("sessions_rate_limited")
        return _error_response(exc)
    except BudgetExceeded as exc:
        increment_metric("sessions_budget_rejected")
        return _error_response(exc)
    except UserNotFound as exc:
        return _error_response(exc)

    increment_metric("sessions_started")
    if result.previous_session_id:
        increment_metric("sessions_reconciled")
    return {"success": True, "sessionId": result.session_id}


@router.post("/heartbeat")
async def heartbeat_session(request: Request):
    user_id = await get_user_id_async(request)
    try:
        active = await get_dependency_provider().get_budget_manager().heartbeat(user_id)
    except (SessionDurationExceeded, UserNotFound) as exc:
        return _error_response(exc)
    return {"success": active}


@router.post("/end")
async def end_session(request: Request):
    user_id = await get_user_id_async(request)
    try:
        result = await get_dependency_provider().get_budget_manager().end(user_id)
    except UserNotFound as exc:
        return _error_response(exc)
    if result.ended:
        increment_metric("sessions_ended")
    return {
        "success": True,
        "durationSeconds": result.duration_seconds,
        "dailyTimeUsedSeconds": result.daily_time_used_seconds,
    }
