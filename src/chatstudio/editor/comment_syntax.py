"""Map file types to the comment delimiters used for AI commentary."""

from __future__ import annotations

from pathlib import PurePath
from typing import Mapping

DEFAULT_COMMENT_PREFIX = "// "

_PREFIX_BY_EXTENSION: Mapping[str, str] = {
    # C family
    ".c": "// ",
    ".h": "// ",
    ".cpp": "// ",
    ".hpp": "// ",
    ".cs": "// ",
    ".java": "// ",
    ".js": "// ",
    ".jsx": "// ",
    ".ts": "// ",
    ".tsx": "// ",
    ".go": "// ",
    ".rs": "// ",
    ".swift": "// ",
    ".kt": "// ",
    ".fs": "// ",
    ".razor": "// ",
    # hash comments
    ".py": "# ",
    ".rb": "# ",
    ".sh": "# ",
    ".ps1": "# ",
    ".pl": "# ",
    ".r": "# ",
    ".yml": "# ",
    ".yaml": "# ",
    ".toml": "# ",
    ".cmake": "# ",
    # others
    ".sql": "-- ",
    ".lua": "-- ",
    ".hs": "-- ",
    ".vb": "' ",
    ".vbs": "' ",
    ".asm": "; ",
    ".ini": "; ",
    ".m": "% ",
    ".tex": "% ",
    ".html": "<!-- ",
    ".htm": "<!-- ",
    ".xml": "<!-- ",
    ".xaml": "<!-- ",
    ".cshtml": "<!-- ",
    ".config": "<!-- ",
    ".csproj": "<!-- ",
}

# Prefixes whose comments must be closed on the same line.
_SUFFIX_BY_PREFIX: Mapping[str, str] = {
    "<!-- ": " -->",
}

_PREFIX_BY_FILENAME: Mapping[str, str] = {
    "makefile": "# ",
    "dockerfile": "# ",
    "cmakelists.txt": "# ",
}


def resolve_comment_prefix(file_path: str | PurePath | None) -> str:
    """Return the comment prefix for ``file_path``; unknown types use ``// ``."""

    if not file_path:
        return DEFAULT_COMMENT_PREFIX
    path = PurePath(str(file_path))
    by_name = _PREFIX_BY_FILENAME.get(path.name.lower())
    if by_name is not None:
        return by_name
    return _PREFIX_BY_EXTENSION.get(path.suffix.lower(), DEFAULT_COMMENT_PREFIX)


def resolve_comment_suffix(file_path: str | PurePath | None) -> str:
    """Return the text closing a comment opened for ``file_path``, or ``""``."""

    return _SUFFIX_BY_PREFIX.get(resolve_comment_prefix(file_path), "")


__all__ = ["DEFAULT_COMMENT_PREFIX", "resolve_comment_prefix", "resolve_comment_suffix"]
