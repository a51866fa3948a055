"""Capture invocation contexts from the live editor selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..errors import NoActiveDocumentError, NoSelectionError
from ..streaming.types import CommandKind, InvocationContext
from .document_model import DocumentBuffer


class ActiveDocumentProvider(Protocol):
    """Host hook returning the document the user is editing, if any."""

    def active_document(self) -> DocumentBuffer | None:
        ...


@dataclass(slots=True)
class StaticDocumentProvider:
    """Provider over a single buffer, used by the CLI and tests."""

    document: DocumentBuffer | None

    def active_document(self) -> DocumentBuffer | None:
        return self.document


@dataclass(slots=True)
class SelectionGateway:
    """Reads caret and selection state into an immutable :class:`InvocationContext`."""

    provider: ActiveDocumentProvider
    require_selection: bool = True

    def require_document(self) -> DocumentBuffer:
        document = self.provider.active_document()
        if document is None:
            raise NoActiveDocumentError("There is no active document.")
        return document

    def capture(self, kind: CommandKind, *, document: DocumentBuffer | None = None) -> InvocationContext:
        buffer = document or self.require_document()
        length = len(buffer.text)
        start, end = self._clamp_range(buffer.selection.start, buffer.selection.end, length)
        selection_text = buffer.text[start:end]
        if self.require_selection and not selection_text.strip():
            raise NoSelectionError()
        caret = max(0, min(int(buffer.caret), length))
        return InvocationContext(
            selection_text=selection_text,
            caret_position=caret,
            selection_start=start,
            selection_end=end,
            command_kind=kind,
            file_path=buffer.file_path,
        )

    @staticmethod
    def _clamp_range(start: int, end: int, length: int) -> tuple[int, int]:
        start = max(0, min(int(start), length))
        end = max(0, min(int(end), length))
        if end < start:
            start, end = end, start
        return start, end


__all__ = ["ActiveDocumentProvider", "SelectionGateway", "StaticDocumentProvider"]
