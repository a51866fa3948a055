"""Code review error types."""

from __future__ import annotations

from ..errors import ChatStudioError


class ReviewError(ChatStudioError):
    """Base error for code review operations."""


class NotARepositoryError(ReviewError):
    """Path is not inside a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class NoChangesError(ReviewError):
    """The working tree has no changes to review."""

    def __init__(self) -> None:
        super().__init__("There are no changes to review.")


__all__ = ["NoChangesError", "NotARepositoryError", "ReviewError"]
