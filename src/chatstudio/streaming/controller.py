"""Translate streamed completion chunks into document buffer mutations."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Callable, List, Mapping, Optional

from ..editor.comment_syntax import resolve_comment_prefix, resolve_comment_suffix
from ..editor.mutations import BufferMutation, DeleteRange, Insert
from ..services import telemetry
from ..utils.enums import LabeledEnum
from .types import CommandKind, InsertionCursor, InvocationContext, StreamState

LOGGER = logging.getLogger(__name__)

DEFAULT_LINE_WRAP_LIMIT = 160
DEFAULT_LINE_BREAK = "\n"
LINE_BREAK_SEQUENCES = frozenset({"\n", "\r", "\r\n"})

CommentResolver = Callable[[str], str]
KindResolver = Callable[[str], CommandKind]
DroppedChunkHook = Callable[[str, str, Optional[BaseException]], None]


class ResponseMode(LabeledEnum):
    """How the completion client delivers the response."""

    STREAMING = ("streaming", "Streamed chunks")
    SINGLE = ("single", "Single complete result")


class DropReason(LabeledEnum):
    LEADING_LINE_BREAK = ("leading_line_break", "Line break before content")
    BRACE_FILTER = ("brace_filter", "Stray brace in summary output")
    ERROR = ("error", "Mutation construction failed")


def strip_blank_lines(text: str) -> str:
    """Remove every whitespace-only line from ``text``."""

    return "".join(line for line in text.splitlines(keepends=True) if line.strip())


class StreamInsertionController:
    """Incremental state machine placing completion chunks into a document.

    The controller performs no I/O: each call returns the mutations the
    buffer owner must apply, in order. It holds no locks and expects every
    call to arrive serialized from the task that owns the document.

    Setup (erasing the selection or opening a separator line, plus the
    comment delimiters for commentary commands) runs on the first
    :meth:`on_chunk` call, never in :meth:`begin`, because the command kind
    may be resolved lazily from the selection at that point.
    """

    def __init__(
        self,
        *,
        mode: ResponseMode = ResponseMode.STREAMING,
        commentary: bool = False,
        filter_braces: bool = False,
        kind_resolver: KindResolver | None = None,
        comment_resolver: CommentResolver = resolve_comment_prefix,
        suffix_resolver: CommentResolver = resolve_comment_suffix,
        line_break: str = DEFAULT_LINE_BREAK,
        line_wrap_limit: int = DEFAULT_LINE_WRAP_LIMIT,
        on_chunk_dropped: DroppedChunkHook | None = None,
        on_end: Callable[[], None] | None = None,
    ) -> None:
        if not line_break:
            raise ValueError("line_break must not be empty")
        self._mode = mode
        self._commentary = commentary
        self._filter_braces = filter_braces
        self._kind_resolver = kind_resolver
        self._comment_resolver = comment_resolver
        self._suffix_resolver = suffix_resolver
        self._line_break = line_break
        self._line_wrap_limit = max(1, int(line_wrap_limit))
        self._on_chunk_dropped = on_chunk_dropped
        self._on_end = on_end
        self._context: InvocationContext | None = None
        self._cursor = InsertionCursor()
        self._state = StreamState()
        self._dropped: Counter[str] = Counter()
        self._finished = False

    @property
    def context(self) -> InvocationContext | None:
        return self._context

    @property
    def cursor(self) -> InsertionCursor:
        return self._cursor

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def dropped_chunks(self) -> Mapping[str, int]:
        return dict(self._dropped)

    @property
    def dropped_total(self) -> int:
        return sum(self._dropped.values())

    def begin(self, context: InvocationContext) -> None:
        """Attach the invocation context and reset all per-stream state."""

        self._context = context
        self._cursor = InsertionCursor(position=context.caret_position)
        self._state = StreamState()
        self._dropped = Counter()
        self._finished = False

    def on_chunk(self, text: str) -> List[BufferMutation]:
        """Return the mutations placing ``text`` into the document."""

        if self._context is None:
            raise RuntimeError("begin() must be called before on_chunk()")
        if self._finished:
            LOGGER.debug("Ignoring chunk received after end()")
            return []

        mutations: List[BufferMutation] = []
        if not self._state.first_chunk_seen:
            mutations.extend(self._setup(self._context))
            self._state.first_chunk_seen = True

        try:
            mutations.extend(self._process(text))
        except Exception as exc:
            self._record_drop(DropReason.ERROR, text, exc)
        return mutations

    def end(self) -> None:
        """Signal that the stream is complete and the document may be formatted."""

        if self._finished:
            return
        self._finished = True
        if self._dropped:
            LOGGER.debug("Stream finished with dropped chunks: %s", dict(self._dropped))
        if self._on_end is not None:
            self._on_end()

    def _setup(self, context: InvocationContext) -> List[BufferMutation]:
        kind = context.command_kind
        if self._kind_resolver is not None:
            kind = self._kind_resolver(context.selection_text)

        mutations: List[BufferMutation] = []
        if kind is CommandKind.REPLACE:
            self._cursor.position = context.selection_start
            mutations.append(DeleteRange(context.selection_start, len(context.selection_text)))
        elif kind is CommandKind.INSERT_BEFORE:
            self._cursor.position = context.selection_start
            mutations.append(Insert(context.selection_start, self._line_break))
        elif kind is CommandKind.INSERT_AFTER:
            self._cursor.position = context.selection_end
            mutations.append(Insert(context.selection_end, self._line_break))
            self._cursor.position += len(self._line_break)
        else:
            raise ValueError(f"Unsupported command kind: {kind!r}")

        if self._commentary:
            mutations.extend(self._open_comment(self._cursor, context))

        LOGGER.debug(
            "Stream setup for %s at %s (%s mutation(s))",
            kind.value,
            self._cursor.position,
            len(mutations),
        )
        return mutations

    def _process(self, text: str) -> List[BufferMutation]:
        if self._mode is ResponseMode.SINGLE:
            text = strip_blank_lines(text)
        elif not self._state.non_empty_content_seen and text in LINE_BREAK_SEQUENCES:
            self._record_drop(DropReason.LEADING_LINE_BREAK, text)
            return []

        if self._filter_braces and ("{" in text or "}" in text):
            self._record_drop(DropReason.BRACE_FILTER, text)
            return []
        if not text:
            return []

        # Work on a copy so a failure leaves the cursor where the last good chunk put it.
        cursor = replace(self._cursor)
        mutations: List[BufferMutation] = [Insert(cursor.position, text)]
        cursor.advance(len(text), track_line=self._commentary)

        if self._commentary and cursor.line_length > self._line_wrap_limit:
            cursor.position += cursor.closing_length
            mutations.append(Insert(cursor.position, self._line_break))
            cursor.position += len(self._line_break)
            mutations.extend(self._open_comment(cursor, self._context))
            cursor.line_length = 0

        self._cursor = cursor
        self._state.non_empty_content_seen = True
        return mutations

    def _open_comment(self, cursor: InsertionCursor, context: InvocationContext | None) -> List[Insert]:
        """Insert the comment delimiters and leave ``cursor`` between them."""

        file_path = context.file_path if context is not None else ""
        prefix = self._comment_resolver(file_path)
        suffix = self._suffix_resolver(file_path)
        mutations = [Insert(cursor.position, prefix)]
        cursor.position += len(prefix)
        if suffix:
            mutations.append(Insert(cursor.position, suffix))
        cursor.closing_length = len(suffix)
        return mutations

    def _record_drop(self, reason: DropReason, text: str, exc: BaseException | None = None) -> None:
        self._dropped[reason.value] += 1
        if exc is not None:
            LOGGER.debug("Dropped chunk %r: %s", text, exc, exc_info=exc)
        else:
            LOGGER.debug("Dropped chunk %r (%s)", text, reason.value)
        telemetry.emit(
            "stream.chunk_dropped",
            {"reason": reason.value, "length": len(text) if isinstance(text, str) else 0},
        )
        if self._on_chunk_dropped is not None:
            try:
                self._on_chunk_dropped(reason.value, text, exc)
            except Exception:  # pragma: no cover - hooks must not break the stream
                LOGGER.debug("Dropped-chunk hook failed", exc_info=True)


__all__ = [
    "DEFAULT_LINE_BREAK",
    "DEFAULT_LINE_WRAP_LIMIT",
    "DropReason",
    "ResponseMode",
    "StreamInsertionController",
    "strip_blank_lines",
]
