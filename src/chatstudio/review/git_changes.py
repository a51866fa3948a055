"""Read working tree changes from a git repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pygit2
from pygit2.enums import DiffOption

from .errors import NotARepositoryError

LOGGER = logging.getLogger(__name__)

_WORKDIR_FLAGS = (
    DiffOption.INCLUDE_UNTRACKED
    | DiffOption.RECURSE_UNTRACKED_DIRS
    | DiffOption.SHOW_UNTRACKED_CONTENT
)


@dataclass(frozen=True, slots=True)
class FileChange:
    """One changed file and its unified patch against HEAD."""

    path: str
    status: str
    patch: str


class GitChanges:
    """Owns a ``pygit2.Repository`` and lists changes pending review."""

    def __init__(self, repo_path: Path | str, *, context_lines: int = 3) -> None:
        self._path = Path(repo_path)
        self._context_lines = max(0, int(context_lines))
        try:
            discovered = pygit2.discover_repository(str(self._path))
        except pygit2.GitError as exc:
            raise NotARepositoryError(str(self._path)) from exc
        if discovered is None:
            raise NotARepositoryError(str(self._path))
        try:
            self._repo = pygit2.Repository(discovered)
        except pygit2.GitError as exc:
            raise NotARepositoryError(str(self._path)) from exc

    @property
    def workdir(self) -> Path:
        return Path(self._repo.workdir) if self._repo.workdir else self._path

    def working_tree_changes(self) -> list[FileChange]:
        """Return every modified, added or deleted file compared to HEAD."""

        diff = self._head_tree().diff_to_workdir(_WORKDIR_FLAGS, self._context_lines)
        changes: list[FileChange] = []
        for patch in diff:
            if patch is None:
                continue
            delta = patch.delta
            if delta.is_binary:
                LOGGER.debug("Skipping binary change %s", delta.new_file.path)
                continue
            path = delta.new_file.path or delta.old_file.path
            changes.append(FileChange(path=path, status=delta.status_char(), patch=patch.text or ""))
        LOGGER.debug("Found %s changed file(s) in %s", len(changes), self.workdir)
        return changes

    def _head_tree(self) -> pygit2.Tree:
        if self._repo.head_is_unborn:
            empty_tree_oid = self._repo.TreeBuilder().write()
            return self._repo.get(empty_tree_oid)  # type: ignore[return-value]
        return self._repo.head.peel(pygit2.Tree)


def split_patch(patch: str) -> tuple[str, str]:
    """Separate a unified patch into the original and the altered code."""

    original: list[str] = []
    altered: list[str] = []
    in_hunk = False
    for line in patch.splitlines():
        if line.startswith("diff --git"):
            in_hunk = False
            continue
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk:
            # Everything before the first hunk is header.
            continue
        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue
        if line.startswith("-"):
            original.append(line[1:])
        elif line.startswith("+"):
            altered.append(line[1:])
        else:
            body = line[1:] if line.startswith(" ") else line
            original.append(body)
            altered.append(body)
    return "\n".join(original), "\n".join(altered)


__all__ = ["FileChange", "GitChanges", "split_patch"]
