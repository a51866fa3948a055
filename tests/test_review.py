"""Tests for the code reviewer and the review panel state."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

import pytest

from chatstudio.ai.client import ClientSettings, CompletionClient
from chatstudio.review.errors import NoChangesError, ReviewError
from chatstudio.review.git_changes import FileChange
from chatstudio.review.panel import ReviewPanel
from chatstudio.review.reviewer import CodeReviewer, normalize_code_fences
from tests.helpers import make_openai_stub

_PATCH = (
    "diff --git a/src/Calc.cs b/src/Calc.cs\n"
    "--- a/src/Calc.cs\n"
    "+++ b/src/Calc.cs\n"
    "@@ -1,2 +1,2 @@\n"
    " int Add(int a, int b)\n"
    "-    => a - b;\n"
    "+    => a + b;\n"
)


class StaticChanges:
    def __init__(self, changes: Sequence[FileChange]) -> None:
        self._changes = list(changes)

    def working_tree_changes(self) -> list[FileChange]:
        return list(self._changes)


def _client(response_text: str = "Looks good.\n```csharp\nint x;\n```"):
    stub = make_openai_stub(response_text=response_text)
    settings = ClientSettings(base_url="https://api.example.com/v1", api_key="sk-test", model="test-model")
    return CompletionClient(settings, client=stub), stub


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("```csharp\nvar x = 1;\n```", "```c\nvar x = 1;\n```"),
        ("```C#\nvar x = 1;\n```", "```c\nvar x = 1;\n```"),
        ("```python\nx = 1\n```", "```python\nx = 1\n```"),
    ],
)
def test_normalize_code_fences(raw: str, expected: str) -> None:
    assert normalize_code_fences(raw) == expected


@pytest.mark.asyncio
async def test_review_change_builds_item_from_patch() -> None:
    client, stub = _client()
    reviewer = CodeReviewer(client, path_resolver=lambda path: f"/work/{path}")

    item = await reviewer.review_change(FileChange("src/Calc.cs", "M", _PATCH))

    assert item.review == "Looks good.\n```c\nint x;\n```"
    assert item.original_code == "int Add(int a, int b)\n    => a - b;"
    assert item.altered_code == "int Add(int a, int b)\n    => a + b;"
    assert item.full_path == "/work/src/Calc.cs"
    assert item.is_expanded is True
    prompt = stub.chat.completions.calls[0]["messages"][-1]["content"]
    assert "src/Calc.cs" in prompt and prompt.endswith(_PATCH)


@pytest.mark.asyncio
async def test_review_stops_when_cancelled(captured_events) -> None:
    client, stub = _client()
    reviewer = CodeReviewer(client, prompt_template="Review {file_name}")
    cancel = asyncio.Event()
    changes = [FileChange(f"file{index}.cs", "M", _PATCH) for index in range(3)]

    items = []
    async for item in reviewer.review(changes, cancel_event=cancel):
        items.append(item)
        cancel.set()

    assert [item.file_name for item in items] == ["file0.cs"]
    assert len(stub.chat.completions.calls) == 1
    assert captured_events == [{"event": "review.cancelled", "remaining": 2}]


@pytest.mark.asyncio
async def test_panel_runs_review_and_toggles_expansion(tmp_path: Path) -> None:
    client, _stub = _client("Fine.")
    panel = ReviewPanel(tmp_path, reviewer=CodeReviewer(client))
    changes = StaticChanges([FileChange("a.cs", "M", _PATCH), FileChange("b.cs", "A", "@@ -0,0 +1 @@\n+int y;\n")])

    items = await panel.run(changes)

    assert [item.file_name for item in items] == ["a.cs", "b.cs"]
    assert items[1].status == "A"
    assert panel.reviewing is False
    panel.collapse_all()
    assert not any(item.is_expanded for item in panel.items)
    panel.expand_all()
    assert all(item.is_expanded for item in panel.items)


@pytest.mark.asyncio
async def test_panel_without_changes_raises(tmp_path: Path) -> None:
    client, _stub = _client()
    panel = ReviewPanel(tmp_path, reviewer=CodeReviewer(client))

    with pytest.raises(NoChangesError, match="There are no changes to review."):
        await panel.run(StaticChanges([]))


@pytest.mark.asyncio
async def test_panel_requires_reviewer(tmp_path: Path) -> None:
    with pytest.raises(ReviewError):
        await ReviewPanel(tmp_path).run(StaticChanges([FileChange("a.cs", "M", _PATCH)]))


@pytest.mark.asyncio
async def test_diff_view_shows_unified_diff(tmp_path: Path) -> None:
    client, _stub = _client("ok")
    panel = ReviewPanel(tmp_path, reviewer=CodeReviewer(client))
    await panel.run(StaticChanges([FileChange("src/Calc.cs", "M", _PATCH)]))

    diff = panel.diff_view("src/Calc.cs")

    assert diff.splitlines()[:2] == ["--- a/src/Calc.cs", "+++ b/src/Calc.cs"]
    assert "-    => a - b;" in diff
    assert "+    => a + b;" in diff
    with pytest.raises(KeyError):
        panel.diff_view("missing.cs")


def test_resolve_full_path_matches_suffix_case_insensitively(tmp_path: Path) -> None:
    target = tmp_path / "src" / "Services" / "Calc.cs"
    target.parent.mkdir(parents=True)
    target.write_text("", encoding="utf-8")
    ignored = tmp_path / "node_modules" / "services" / "calc.cs"
    ignored.parent.mkdir(parents=True)
    ignored.write_text("", encoding="utf-8")
    panel = ReviewPanel(tmp_path)

    assert panel.resolve_full_path("services\\calc.cs") == str(target)
    assert panel.resolve_full_path("Unknown.cs") == "Unknown.cs"
