"""Ask the completion API to review each changed file."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Sequence

from ..ai.client import CompletionClient
from ..ai.prompts import build_code_review_prompt
from ..services import telemetry
from .git_changes import FileChange, split_patch

LOGGER = logging.getLogger(__name__)

_CSHARP_FENCE_RE = re.compile(r"```(c#|csharp)", re.IGNORECASE)


def normalize_code_fences(text: str) -> str:
    """Rewrite C# fence tags to ```c so Markdown viewers highlight them."""

    return _CSHARP_FENCE_RE.sub("```c", text)


@dataclass(slots=True)
class CodeReviewItem:
    """Review of a single changed file."""

    file_name: str
    full_path: str
    original_code: str
    altered_code: str
    review: str
    status: str = "M"
    is_expanded: bool = True


class CodeReviewer:
    """Runs one completion request per changed file, in order."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        prompt_template: str | None = None,
        path_resolver: Callable[[str], str] | None = None,
    ) -> None:
        self._client = client
        self._prompt_template = prompt_template
        self._path_resolver = path_resolver

    async def review(
        self,
        changes: Sequence[FileChange],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[CodeReviewItem]:
        """Yield a :class:`CodeReviewItem` per change until cancelled."""

        for index, change in enumerate(changes):
            if cancel_event is not None and cancel_event.is_set():
                LOGGER.info("Code review cancelled before %s", change.path)
                telemetry.emit("review.cancelled", {"remaining": len(changes) - index})
                return
            yield await self.review_change(change)

    async def review_change(self, change: FileChange) -> CodeReviewItem:
        prompt = build_code_review_prompt(change.path, change.patch, template=self._prompt_template)
        LOGGER.debug("Requesting review for %s", change.path)
        review = await self._client.request_single(prompt)
        original, altered = split_patch(change.patch)
        full_path = self._path_resolver(change.path) if self._path_resolver else change.path
        return CodeReviewItem(
            file_name=change.path,
            full_path=full_path,
            original_code=original,
            altered_code=altered,
            review=normalize_code_fences(review),
            status=change.status,
        )


__all__ = ["CodeReviewItem", "CodeReviewer", "normalize_code_fences"]
