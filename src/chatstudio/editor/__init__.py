"""Editor document model, mutations and selection snapshots."""

from .document_model import DocumentBuffer, DocumentMetadata, SelectionRange
from .mutations import BufferMutation, DeleteRange, Insert, NoOp

__all__ = [
    "BufferMutation",
    "DeleteRange",
    "DocumentBuffer",
    "DocumentMetadata",
    "Insert",
    "NoOp",
    "SelectionRange",
]
