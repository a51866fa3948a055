"""In-process telemetry events plus an opt-in JSONL sink."""

from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

LOGGER = logging.getLogger(__name__)

_EVENT_LISTENERS: dict[str, list[Callable[[dict[str, Any]], None]]] = {}
_DEFAULT_TELEMETRY_DIR = Path.home() / ".chatstudio" / "telemetry"
_TRUE_VALUES = {"1", "true", "yes", "on"}


def register_event_listener(event_name: str, callback: Callable[[dict[str, Any]], None]) -> None:
    """Register a callback invoked whenever :func:`emit` fires *event_name*."""

    if not event_name or callback is None:
        return
    listeners = _EVENT_LISTENERS.setdefault(event_name, [])
    if callback not in listeners:
        listeners.append(callback)


def unregister_event_listener(event_name: str, callback: Callable[[dict[str, Any]], None]) -> None:
    listeners = _EVENT_LISTENERS.get(event_name)
    if not listeners:
        return
    if callback in listeners:
        listeners.remove(callback)
    if not listeners:
        _EVENT_LISTENERS.pop(event_name, None)


def emit(event_name: str, payload: Mapping[str, Any] | None = None) -> None:
    """Broadcast a structured telemetry event to in-process listeners."""

    if not event_name:
        return
    event_payload = {"event": event_name}
    if payload:
        event_payload.update(payload)
    listeners = list(_EVENT_LISTENERS.get(event_name, ()))
    for callback in listeners:
        try:
            callback(dict(event_payload))
        except Exception:  # pragma: no cover - listeners must not break emitters
            LOGGER.debug("Telemetry listener %s failed", callback, exc_info=True)
    LOGGER.debug("Telemetry emit %s: %s", event_name, event_payload)


@dataclass(slots=True)
class TelemetryEvent:
    """Represents a single telemetry event prior to serialization."""

    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def serialize(self, session_id: str) -> str:
        payload = {
            "session_id": session_id,
            "name": self.name,
            "timestamp": self.timestamp.isoformat(),
            "properties": self.properties,
        }
        return json.dumps(payload, default=_json_default, ensure_ascii=False)


@dataclass(slots=True)
class TelemetryClient:
    """Buffers events and flushes them as JSONL to disk when enabled."""

    enabled: bool = False
    storage_dir: Path | str | None = None
    max_buffer: int = 32
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    _buffer: list[TelemetryEvent] = field(default_factory=list, init=False, repr=False)

    def track_event(self, name: str, **props: Any) -> None:
        if not self.enabled:
            return
        self._buffer.append(TelemetryEvent(name=name, properties=_sanitize_props(props)))
        if len(self._buffer) >= self.max_buffer:
            self.flush()

    def listen(self, *event_names: str) -> None:
        """Forward in-process events named ``event_names`` into this client."""

        for name in event_names:
            register_event_listener(name, self._forward)

    def flush(self) -> Path | None:
        if not self.enabled or not self._buffer:
            return None
        target_dir = _resolve_storage_dir(self.storage_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        log_path = target_dir / "telemetry.jsonl"
        with log_path.open("a", encoding="utf-8") as handle:
            for event in self._buffer:
                handle.write(event.serialize(self.session_id))
                handle.write("\n")
        self._buffer.clear()
        return log_path

    def pending_events(self) -> int:
        return len(self._buffer)

    def _forward(self, payload: dict[str, Any]) -> None:
        data = dict(payload)
        name = str(data.pop("event", "event"))
        self.track_event(name, **data)


def telemetry_enabled(settings: Any | None = None) -> bool:
    """Return ``True`` if telemetry should be enabled for the current session."""

    env_value = os.environ.get("CHATSTUDIO_TELEMETRY")
    if env_value is not None:
        return env_value.strip().lower() in _TRUE_VALUES
    if settings is None:
        return False
    return bool(getattr(settings, "telemetry_opt_in", False))


def _sanitize_props(props: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in props.items():
        if isinstance(value, Path):
            sanitized[key] = str(value)
        elif isinstance(value, datetime):
            sanitized[key] = value.isoformat()
        else:
            sanitized[key] = value
    return sanitized


def _json_default(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value)!r} is not JSON serializable")


def _resolve_storage_dir(storage_dir: Path | str | None) -> Path:
    env_override = os.environ.get("CHATSTUDIO_TELEMETRY_DIR")
    return Path(storage_dir or env_override or _DEFAULT_TELEMETRY_DIR).expanduser()


__all__ = [
    "TelemetryClient",
    "TelemetryEvent",
    "emit",
    "register_event_listener",
    "telemetry_enabled",
    "unregister_event_listener",
]
