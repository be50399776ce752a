import json
import logging
from typing import Any

logger = logging.getLogger("voiceinterview.events")

# Candidate speech and model output never reach the logs verbatim.
_REDACTED_KEYS = {"text", "transcript", "user_text", "reply", "prompt", "token"}


def _sanitize_value(key: str, value: Any) -> Any:
	normalized_key = str(key or "").lower()
	if isinstance(value, (bytes, bytearray)):
		return {"bytes": len(value)}
	if normalized_key in _REDACTED_KEYS:
		return {"redacted": True, "length": len(str(value or ""))}
	if value is None or isinstance(value, (str, int, float, bool)):
		return value
	if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
		return value.value
	if isinstance(value, dict):
		return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set)):
		return [_sanitize_value(normalized_key, item) for item in value]
	return str(value)


def log_event(component: str, event: str, connection_id: str, **fields) -> None:
	"""Emit one JSON line for a connection milestone."""
	payload = {
		"component": str(component or "voiceinterview"),
		"event": str(event or "unknown"),
		"connection_id": str(connection_id or ""),
	}
	for key, value in fields.items():
		payload[str(key)] = _sanitize_value(str(key), value)
	logger.info(json.dumps(payload, ensure_ascii=False, default=str))


def configure_logging(level: str = "INFO") -> None:
	logging.basicConfig(
		format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
		level=getattr(logging, str(level or "INFO").upper(), logging.INFO),
	)
