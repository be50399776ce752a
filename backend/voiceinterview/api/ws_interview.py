from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
import asyncio
import base64
import binascii
import json
import logging
import time
import uuid

from starlette.websockets import WebSocketState

from core.config import WS_MAX_TEXT_BYTES
from core.logger import log_event
from voiceinterview.api.dependencies import get_dependency_provider
from voiceinterview.auth import verify_token_claims_async
from voiceinterview.errors import AuthenticationFailure, BudgetExceeded, InterviewError, RateLimited, SessionDurationExceeded, UserNotFound
from voiceinterview.interview.events import InterviewEmitter
from voiceinterview.session.registry import connection_registry
from voiceinterview.system_metrics import decrement_metric, increment_metric, record_ws_disconnect

logger = logging.getLogger("ws_interview")

MAX_DURATION_MESSAGE = "Session exceeded maximum duration."
SESSION_REQUIRED_MESSAGE = "Start a session before starting the interview."
INTERVIEW_CLOSED_MESSAGE = "This interview has ended. Reconnect to start a new one."
STT_UNAVAILABLE_MESSAGE = "Speech recognition is unavailable right now. Please try again."

router = APIRouter()
websocket_send_locks: dict[WebSocket, asyncio.Lock] = {}


async def _send_text_with_lock(websocket: WebSocket, encoded_payload: str) -> None:
    send_lock = websocket_send_locks.get(websocket)
    if send_lock is None:
        return
    async with send_lock:
        await websocket.send_text(encoded_payload)


def _extract_token(websocket: WebSocket) -> str:
    auth_header = str(websocket.headers.get("authorization") or "").strip()
    token_from_header = auth_header.replace("Bearer ", "", 1).strip() if auth_header.lower().startswith("bearer ") else ""
    return (
        token_from_header
        or str(websocket.query_params.get("token") or "").strip()
        or str(websocket.query_params.get("access_token") or "").strip()
    )


def disconnect_reason(stop_reason: str, orchestrator) -> str:
    """A client leaving after a forced termination is counted as terminated."""
    if stop_reason == "client_disconnect" and orchestrator.termination_reason:
        return "terminated"
    return stop_reason


@router.websocket("/ws/interview")
async def interview_ws(websocket: WebSocket):
    connection_id = str(uuid.uuid4())
    token = _extract_token(websocket)
    if not token:
        increment_metric("ws_auth_rejected")
        await websocket.close(code=1008, reason="Unauthorized")
        return
    try:
        claims = await verify_token_claims_async(token)
    except (AuthenticationFailure, HTTPException) as exc:
        logger.info("ws auth rejected | connection_id=%s err=%s", connection_id, exc)
        increment_metric("ws_auth_rejected")
        await websocket.close(code=1008, reason="Unauthorized")
        return
    user_id = str(claims["sub"])

    provider = get_dependency_provider()
    budget = provider.get_budget_manager()
    start_limiter = provider.get_start_rate_limiter()
    await budget.ensure_user(user_id, email=claims.get("email"), display_name=claims.get("name"))

    await websocket.accept()
    websocket_send_locks[websocket] = asyncio.Lock()

    def _log_event(event: str, **fields):
        log_event("ws_interview", event, connection_id, user_id=user_id, **fields)

    _log_event("connect")

    async def _safe_send(payload: dict):
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            encoded = json.dumps(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("ws payload encode failed | connection_id=%s err=%s", connection_id, exc)
            return
        try:
            await _send_text_with_lock(websocket, encoded)
        except Exception as exc:
            logger.warning("ws send failed | connection_id=%s err=%s", connection_id, exc)

    emitter = InterviewEmitter(send_fn=_safe_send)
    # Session granted to this connection; other windows of the same user hold their own.
    session_id: str | None = None

    async def _on_terminate(reason: str) -> None:
        nonlocal session_id
        owned, session_id = session_id, None
        if owned is None:
            return
        try:
            await budget.end(user_id, session_id=owned)
        except InterviewError as exc:
            logger.warning("budget end after termination failed | user_id=%s reason=%s err=%s", user_id, reason, exc)

    orchestrator = provider.create_orchestrator(user_id, emitter, connection_id, _on_terminate)
    connection_registry.register(connection_id, user_id, orchestrator)
    increment_metric("ws_connections_active", 1)
    increment_metric("ws_connections_total", 1)

    async def _ack(event: str, ack_id, success: bool, **fields) -> None:
        payload = {"type": "ack", "event": event, "id": ack_id, "success": success}
        payload.update({key: value for key, value in fields.items() if value is not None})
        await _safe_send(payload)

    # ================= SESSION EVENTS =================
    async def handle_session_start(ack_id) -> None:
        nonlocal session_id
        try:
            start_limiter.check(user_id)
            result = await budget.start(user_id)
        except (RateLimited, BudgetExceeded, UserNotFound) as exc:
            if isinstance(exc, RateLimited):
                increment_metric("sessions_rate_limited")
            elif isinstance(exc, BudgetExceeded):
                increment_metric("sessions_budget_rejected")
            _log_event("session_start_rejected", code=exc.code)
            await _ack("session:start", ack_id, False, error=exc.message)
            return
        session_id = result.session_id
        increment_metric("sessions_started")
        if result.previous_session_id:
            increment_metric("sessions_reconciled")
        _log_event("session_started", session_id=result.session_id, reconciled_seconds=result.reconciled_seconds)
        await _ack("session:start", ack_id, True, sessionId=result.session_id)

    async def handle_heartbeat() -> None:
        nonlocal session_id
        try:
            await budget.heartbeat(user_id)
        except SessionDurationExceeded as exc:
            session_id = None
            _log_event("session_max_duration")
            await orchestrator.terminate(exc.code, MAX_DURATION_MESSAGE)
        except InterviewError as exc:
            # Heartbeats are best-effort; only the ceiling breach is surfaced.
            logger.warning("heartbeat failed | user_id=%s err=%s", user_id, exc)

    async def handle_session_end(ack_id) -> None:
        nonlocal session_id
        try:
            result = await budget.end(user_id, session_id=session_id)
        except UserNotFound as exc:
            await _ack("session:end", ack_id, False, error=exc.message)
            return
        session_id = None
        if result.ended:
            increment_metric("sessions_ended")
        if orchestrator.started:
            await orchestrator.close()
        _log_event("session_ended", ended=result.ended, duration_seconds=result.duration_seconds)
        await _ack("session:end", ack_id, True)

    async def handle_interview_start() -> None:
        if orchestrator.terminated:
            await emitter.error(INTERVIEW_CLOSED_MESSAGE)
            return
        if session_id is None:
            await emitter.error(SESSION_REQUIRED_MESSAGE)
            return
        try:
            await orchestrator.begin_interview()
        except Exception as exc:
            increment_metric("provider_failures")
            _log_event("interview_start_failed", error=type(exc).__name__)
            logger.warning("interview start failed | user_id=%s err=%s", user_id, exc)
            await emitter.error(STT_UNAVAILABLE_MESSAGE)

    async def handle_audio_payload(payload: dict) -> None:
        try:
            chunk = base64.b64decode(str(payload.get("audio") or ""), validate=True)
        except (binascii.Error, ValueError):
            logger.warning("audio chunk decode failed | connection_id=%s", connection_id)
            return
        await orchestrator.handle_audio_chunk(chunk)

    async def dispatch(payload: dict) -> None:
        payload_type = str(payload.get("type") or "").strip().lower()
        ack_id = payload.get("id")
        if payload_type == "ping":
            await _safe_send({"type": "pong", "ts": time.time()})
        elif payload_type == "audio:chunk":
            await handle_audio_payload(payload)
        elif payload_type == "session:start":
            await handle_session_start(ack_id)
        elif payload_type == "session:heartbeat":
            await handle_heartbeat()
        elif payload_type == "session:end":
            await handle_session_end(ack_id)
        elif payload_type == "interview:start":
            await handle_interview_start()
        elif payload_type == "session:violation":
            await orchestrator.handle_violation()
        else:
            _log_event("unknown_message", message_type=payload_type or "unknown")

    # ================= RECEIVE LOOP =================
    stop_reason = "other"
    try:
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                stop_reason = "client_disconnect"
                break
            connection_registry.touch(connection_id)

            if msg.get("bytes") is not None:
                await orchestrator.handle_audio_chunk(msg["bytes"])
                continue

            text_payload = msg.get("text")
            if text_payload is None:
                continue
            if len(text_payload.encode("utf-8")) > WS_MAX_TEXT_BYTES:
                logger.warning("WS message too large | connection_id=%s bytes=%s", connection_id, len(text_payload.encode("utf-8")))
                stop_reason = "message_too_large"
                await websocket.close(code=1009, reason="Message too large")
                break
            try:
                payload = json.loads(text_payload)
            except json.JSONDecodeError:
                await emitter.error("Malformed message.")
                continue
            if not isinstance(payload, dict):
                await emitter.error("Malformed message.")
                continue
            await dispatch(payload)
    except WebSocketDisconnect:
        stop_reason = "client_disconnect"
    finally:
        # The session lock stays held; the next session:start reconciles it.
        await orchestrator.close()
        connection_registry.mark_inactive(connection_id)
        websocket_send_locks.pop(websocket, None)
        decrement_metric("ws_connections_active", 1)
        stop_reason = disconnect_reason(stop_reason, orchestrator)
        record_ws_disconnect(stop_reason)
        _log_event("disconnect", reason=stop_reason)
