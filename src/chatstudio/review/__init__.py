"""AI code review of git working tree changes."""

from .errors import NoChangesError, NotARepositoryError, ReviewError
from .git_changes import FileChange, GitChanges, split_patch
from .panel import ReviewPanel
from .reviewer import CodeReviewer, CodeReviewItem, normalize_code_fences

__all__ = [
    "CodeReviewItem",
    "CodeReviewer",
    "FileChange",
    "GitChanges",
    "NoChangesError",
    "NotARepositoryError",
    "ReviewError",
    "ReviewPanel",
    "normalize_code_fences",
    "split_patch",
]
