from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from core.config import ENVIRONMENT, QA_MODE
from core.logger import configure_logging
from voiceinterview.api.sessions import router as sessions_router
from voiceinterview.api.users import router as users_router
from voiceinterview.api.ws_interview import router as interview_ws_router
from voiceinterview.auth import get_user_id_async
from voiceinterview.session.registry import connection_registry
from voiceinterview.system_metrics import get_metrics_snapshot

configure_logging(os.getenv("LOG_LEVEL", "INFO"))

app = FastAPI(title="Voice Interview")
logger = logging.getLogger("voiceinterview.main")

CONNECTION_CLEANUP_INTERVAL_SEC = max(10.0, float(os.getenv("CONNECTION_CLEANUP_INTERVAL_SEC", "60")))
CONNECTION_CLEANUP_TTL_SEC = max(30.0, float(os.getenv("CONNECTION_CLEANUP_TTL_SEC", "900")))
_connection_cleanup_task: asyncio.Task | None = None


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.on_event("startup")
async def startup_banner():
    global _connection_cleanup_task
    if QA_MODE:
        logger.info("[SYSTEM] QA_MODE ENABLED - Deepgram bypass active")
    logger.info("[SYSTEM] env=%s CORS allow_origins=%s", ENVIRONMENT, _allowed_origins)

    async def _connection_cleanup_loop():
        while True:
            await asyncio.sleep(CONNECTION_CLEANUP_INTERVAL_SEC)
            removed = connection_registry.cleanup_inactive(CONNECTION_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive connections=%s", removed)

    _connection_cleanup_task = asyncio.create_task(_connection_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _connection_cleanup_task
    if _connection_cleanup_task is not None:
        _connection_cleanup_task.cancel()
        try:
            await _connection_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _connection_cleanup_task = None


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "active_connections": connection_registry.active_count()}


@app.get("/api/metrics")
async def metrics_route(request: Request):
    await get_user_id_async(request)
    return get_metrics_snapshot(extra={
        "registry_active_connections": connection_registry.active_count(),
    })


app.include_router(interview_ws_router)
app.include_router(sessions_router)
app.include_router(users_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "voiceinterview.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
