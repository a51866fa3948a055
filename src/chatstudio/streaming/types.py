"""Per-invocation state carried by the stream insertion controller."""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.enums import LabeledEnum


class CommandKind(LabeledEnum):
    """Where a command places its response relative to the selection."""

    REPLACE = ("replace", "Replace selection")
    INSERT_BEFORE = ("insert_before", "Insert before selection")
    INSERT_AFTER = ("insert_after", "Insert after selection")


@dataclass(frozen=True, slots=True)
class InvocationContext:
    """Snapshot of the editor taken once when a command is invoked."""

    selection_text: str
    caret_position: int
    selection_start: int
    selection_end: int
    command_kind: CommandKind
    file_path: str = ""

    def __post_init__(self) -> None:
        if self.selection_end < self.selection_start:
            raise ValueError("selection_end must not precede selection_start")


@dataclass(slots=True)
class InsertionCursor:
    """Where the next chunk is written and how long the current output line is."""

    position: int = 0
    line_length: int = 0
    # Length of the comment terminator sitting just after ``position``.
    closing_length: int = 0

    def advance(self, count: int, *, track_line: bool) -> None:
        self.position += count
        if track_line:
            self.line_length += count


@dataclass(slots=True)
class StreamState:
    first_chunk_seen: bool = False
    non_empty_content_seen: bool = False


__all__ = ["CommandKind", "InsertionCursor", "InvocationContext", "StreamState"]
