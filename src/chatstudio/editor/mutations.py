"""Buffer mutation instructions emitted by the stream insertion controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class DeleteRange:
    """Remove ``length`` characters starting at ``start``."""

    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


@dataclass(frozen=True, slots=True)
class Insert:
    """Insert ``text`` at ``position``."""

    position: int
    text: str


@dataclass(frozen=True, slots=True)
class NoOp:
    """Placeholder emitted when a step produces no edit."""


BufferMutation = Union[DeleteRange, Insert, NoOp]


def inserted_length(mutations: "list[BufferMutation] | tuple[BufferMutation, ...]") -> int:
    """Return the number of characters added by ``mutations``."""

    return sum(len(item.text) for item in mutations if isinstance(item, Insert))


__all__ = ["BufferMutation", "DeleteRange", "Insert", "NoOp", "inserted_length"]
