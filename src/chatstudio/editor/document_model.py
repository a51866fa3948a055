"""In-memory document buffer that applies streamed buffer mutations."""

from __future__ import annotations

import hashlib
import logging
import uuid
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..errors import BufferEditError
from .mutations import BufferMutation, DeleteRange, Insert, NoOp

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class DocumentMetadata:
    """Metadata describing the loaded document."""

    path: Optional[Path] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class SelectionRange:
    """Represents the current selection inside the editor."""

    start: int = 0
    end: int = 0

    def as_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass(slots=True)
class DocumentBuffer:
    """Text buffer with caret, selection and version bookkeeping.

    Offsets are character offsets into :attr:`text`. Every successful edit
    bumps :attr:`version_id` and refreshes :attr:`content_hash`.
    """

    text: str = ""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    selection: SelectionRange = field(default_factory=SelectionRange)
    caret: int = 0
    dirty: bool = False
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = field(default_factory=str)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.text)

    @classmethod
    def from_file(cls, path: Path | str, *, encoding: str = "utf-8") -> "DocumentBuffer":
        target = Path(path)
        # Line endings stay untranslated; offsets index the raw file text.
        with target.open("r", encoding=encoding, newline="") as handle:
            text = handle.read()
        return cls(text=text, metadata=DocumentMetadata(path=target))

    @property
    def file_path(self) -> str:
        return str(self.metadata.path) if self.metadata.path else ""

    @property
    def selected_text(self) -> str:
        start, end = self.selection.as_tuple()
        return self.text[start:end]

    def select(self, start: int, end: int) -> None:
        """Set the selection, clamping to the document and ordering the bounds."""

        length = len(self.text)
        start = max(0, min(int(start), length))
        end = max(0, min(int(end), length))
        if end < start:
            start, end = end, start
        self.selection = SelectionRange(start, end)
        self.caret = end

    def insert(self, position: int, text: str) -> None:
        if position < 0 or position > len(self.text):
            raise BufferEditError(
                f"Insert position {position} is outside the document",
                position=position,
                length=len(text),
                buffer_length=len(self.text),
            )
        if not text:
            return
        self._update_text(self.text[:position] + text + self.text[position:])

    def delete(self, start: int, length: int) -> None:
        end = start + length
        if start < 0 or length < 0 or end > len(self.text):
            raise BufferEditError(
                f"Delete range [{start}, {end}) is outside the document",
                position=start,
                length=length,
                buffer_length=len(self.text),
            )
        if not length:
            return
        self._update_text(self.text[:start] + self.text[end:])

    def apply(self, mutation: BufferMutation) -> None:
        """Apply a single mutation emitted by the insertion controller."""

        if isinstance(mutation, Insert):
            self.insert(mutation.position, mutation.text)
        elif isinstance(mutation, DeleteRange):
            self.delete(mutation.start, mutation.length)
        elif isinstance(mutation, NoOp):
            return
        else:  # pragma: no cover - guarded by the mutation union
            raise TypeError(f"Unsupported mutation: {mutation!r}")

    def apply_all(self, mutations: Iterable[BufferMutation]) -> int:
        applied = 0
        for mutation in mutations:
            self.apply(mutation)
            applied += 1
        return applied

    def line_offsets(self) -> tuple[int, ...]:
        """Return the start offset of every line."""

        offsets = [0]
        cursor = 0
        for segment in self.text.splitlines(keepends=True):
            cursor += len(segment)
            offsets.append(cursor)
        if len(offsets) > 1 and not self.text.endswith(("\n", "\r")):
            offsets.pop()
        return tuple(offsets)

    def line_number_at(self, position: int) -> int:
        position = max(0, min(int(position), len(self.text)))
        return bisect_right(self.line_offsets(), position) - 1

    def line_start(self, line_number: int) -> int:
        offsets = self.line_offsets()
        if line_number < 0 or line_number >= len(offsets):
            raise BufferEditError(
                f"Line {line_number} does not exist",
                reason="line_out_of_range",
                position=line_number,
                buffer_length=len(self.text),
            )
        return offsets[line_number]

    def format_document(self) -> bool:
        """Strip trailing whitespace from every line; return ``True`` when changed."""

        lines = self.text.splitlines(keepends=True)
        formatted: list[str] = []
        for line in lines:
            body = line.rstrip("\r\n")
            ending = line[len(body):]
            formatted.append(body.rstrip(" \t") + ending)
        updated = "".join(formatted)
        if updated == self.text:
            return False
        LOGGER.debug("Formatted document %s", self.document_id)
        self._update_text(updated)
        return True

    def snapshot(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "text": self.text,
            "selection": self.selection.as_tuple(),
            "caret": self.caret,
            "dirty": self.dirty,
            "document_id": self.document_id,
            "version_id": self.version_id,
            "content_hash": self.content_hash,
        }
        if self.metadata.path:
            payload["path"] = str(self.metadata.path)
        return payload

    def save(self, *, encoding: str = "utf-8") -> Path:
        if self.metadata.path is None:
            raise BufferEditError("Document has no backing file", reason="no_path")
        tmp_path = self.metadata.path.with_suffix(self.metadata.path.suffix + ".tmp")
        tmp_path.write_text(self.text, encoding=encoding, newline="")
        tmp_path.replace(self.metadata.path)
        self.dirty = False
        return self.metadata.path

    def _update_text(self, new_text: str) -> None:
        self.text = new_text
        self.dirty = True
        self.metadata.updated_at = _utcnow()
        self.version_id += 1
        self.content_hash = _hash_text(new_text)


__all__ = ["DocumentBuffer", "DocumentMetadata", "SelectionRange"]
