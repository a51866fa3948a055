"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from chatstudio.editor.document_model import DocumentBuffer, DocumentMetadata
from chatstudio.services import telemetry


@pytest.fixture(autouse=True)
def _isolate_telemetry_listeners(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(telemetry, "_EVENT_LISTENERS", {})


@pytest.fixture
def make_buffer() -> Callable[..., DocumentBuffer]:
    def _factory(text: str, *, selection: tuple[int, int] | None = None, path: str = "src/app.cs") -> DocumentBuffer:
        buffer = DocumentBuffer(text=text, metadata=DocumentMetadata(path=Path(path)))
        if selection is not None:
            buffer.select(*selection)
        return buffer

    return _factory


@pytest.fixture
def captured_events() -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    for name in ("stream.chunk_dropped", "stream.apply_failed", "command.completed", "review.cancelled"):
        telemetry.register_event_listener(name, events.append)
    return events
