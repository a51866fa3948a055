"""Incremental placement of streamed AI responses into a document."""

from .controller import DropReason, ResponseMode, StreamInsertionController, strip_blank_lines
from .types import CommandKind, InsertionCursor, InvocationContext, StreamState

__all__ = [
    "CommandKind",
    "DropReason",
    "InsertionCursor",
    "InvocationContext",
    "ResponseMode",
    "StreamInsertionController",
    "StreamState",
    "strip_blank_lines",
]
