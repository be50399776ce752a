import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "ws_connections_active": 0.0,
    "ws_connections_total": 0.0,
    "ws_auth_rejected": 0.0,
    "ws_disconnects_total": 0.0,
    "ws_disconnect_client_disconnect": 0.0,
    "ws_disconnect_message_too_large": 0.0,
    "ws_disconnect_terminated": 0.0,
    "ws_disconnect_other": 0.0,
    "sessions_started": 0.0,
    "sessions_ended": 0.0,
    "sessions_rate_limited": 0.0,
    "sessions_budget_rejected": 0.0,
    "sessions_reconciled": 0.0,
    "turns_completed": 0.0,
    "provider_failures": 0.0,
    "audio_chunks_dropped": 0.0,
    "violations": 0.0,
    "terminations": 0.0,
    "first_audio_total_ms": 0.0,
    "first_audio_samples": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_first_audio_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["first_audio_total_ms"] = float(_metrics.get("first_audio_total_ms", 0.0)) + latency
        _metrics["first_audio_samples"] = float(_metrics.get("first_audio_samples", 0.0)) + 1.0


def record_ws_disconnect(reason: str) -> None:
    normalized = str(reason or "").strip().lower().replace(" ", "_").replace("-", "_")
    key_map = {
        "client_disconnect": "ws_disconnect_client_disconnect",
        "message_too_large": "ws_disconnect_message_too_large",
        "terminated": "ws_disconnect_terminated",
    }
    metric_key = key_map.get(normalized, "ws_disconnect_other")
    with _lock:
        _metrics["ws_disconnects_total"] = float(_metrics.get("ws_disconnects_total", 0.0)) + 1.0
        _metrics[metric_key] = float(_metrics.get(metric_key, 0.0)) + 1.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    first_audio_samples = max(1.0, float(data.get("first_audio_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in data.items():
        if key == "first_audio_total_ms":
            payload[key] = float(value or 0.0)
        else:
            payload[key] = int(value or 0.0)
    payload["avg_first_audio_ms"] = round(float(data.get("first_audio_total_ms") or 0.0) / first_audio_samples, 2)

    if extra:
        payload.update(extra)
    return payload


def reset_metrics() -> None:
    with _lock:
        for key in list(_metrics):
            _metrics[key] = 0.0
