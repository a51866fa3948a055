"""State behind the code review panel: items, expansion, diffs and paths."""

from __future__ import annotations

import asyncio
import difflib
import logging
from pathlib import Path
from typing import Iterable, List

from .errors import NoChangesError, ReviewError
from .git_changes import GitChanges
from .reviewer import CodeReviewer, CodeReviewItem

LOGGER = logging.getLogger(__name__)

_SKIPPED_DIRS = frozenset({".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "bin", "obj"})


class ReviewPanel:
    """Holds review results and answers the panel's button actions."""

    def __init__(self, workspace_root: Path | str, *, reviewer: CodeReviewer | None = None) -> None:
        self._root = Path(workspace_root)
        self._reviewer = reviewer
        self._items: List[CodeReviewItem] = []
        self._cancel_event: asyncio.Event | None = None
        self._reviewing = False

    @property
    def items(self) -> tuple[CodeReviewItem, ...]:
        return tuple(self._items)

    @property
    def reviewer(self) -> CodeReviewer | None:
        return self._reviewer

    @reviewer.setter
    def reviewer(self, value: CodeReviewer | None) -> None:
        self._reviewer = value

    @property
    def reviewing(self) -> bool:
        return self._reviewing

    async def run(self, changes: GitChanges | None = None) -> tuple[CodeReviewItem, ...]:
        """Review the working tree changes, replacing previous results."""

        if self._reviewer is None:
            raise ReviewError("No reviewer is configured for this panel.")
        source = changes or GitChanges(self._root)
        pending = source.working_tree_changes()
        if not pending:
            raise NoChangesError()

        self._items = []
        self._cancel_event = asyncio.Event()
        self._reviewing = True
        try:
            async for item in self._reviewer.review(pending, cancel_event=self._cancel_event):
                self._items.append(item)
        finally:
            self._reviewing = False
            self._cancel_event = None
        return self.items

    def cancel(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()

    def expand_all(self) -> None:
        for item in self._items:
            item.is_expanded = True

    def collapse_all(self) -> None:
        for item in self._items:
            item.is_expanded = False

    def find_item(self, file_name: str) -> CodeReviewItem:
        for item in self._items:
            if item.file_name == file_name:
                return item
        raise KeyError(file_name)

    def diff_view(self, file_name: str, *, context: int = 3) -> str:
        """Return a unified diff between the original and altered code of ``file_name``."""

        item = self.find_item(file_name)
        diff = difflib.unified_diff(
            item.original_code.splitlines(keepends=True),
            item.altered_code.splitlines(keepends=True),
            fromfile=f"a/{item.file_name}",
            tofile=f"b/{item.file_name}",
            lineterm="",
            n=max(0, context),
        )
        return "\n".join(line.rstrip("\n") for line in diff)

    def resolve_full_path(self, partial_path: str) -> str:
        """Find the workspace file whose path ends with ``partial_path``.

        Matching is case-insensitive and separator-agnostic; when nothing
        matches the partial path is returned unchanged.
        """

        needle = partial_path.replace("\\", "/").lower()
        if not needle:
            return partial_path
        for candidate in self._iter_files(self._root):
            if candidate.as_posix().lower().endswith(needle):
                return str(candidate)
        return partial_path

    def _iter_files(self, root: Path) -> Iterable[Path]:
        try:
            entries = sorted(root.iterdir())
        except OSError:
            LOGGER.debug("Unable to list %s", root, exc_info=True)
            return
        for entry in entries:
            if entry.is_dir():
                if entry.name in _SKIPPED_DIRS:
                    continue
                yield from self._iter_files(entry)
            elif entry.is_file():
                yield entry


__all__ = ["ReviewPanel"]
