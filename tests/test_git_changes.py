"""Tests for reading working tree changes with pygit2."""

from __future__ import annotations

from pathlib import Path

import pygit2
import pytest

from chatstudio.review.errors import NotARepositoryError
from chatstudio.review.git_changes import GitChanges, split_patch


def _commit_all(repo: pygit2.Repository, message: str) -> None:
    index = repo.index
    index.add_all()
    index.write()
    tree = index.write_tree()
    signature = pygit2.Signature("Dev", "dev@example.com")
    parents = [] if repo.head_is_unborn else [repo.head.target]
    repo.create_commit("HEAD", signature, signature, message, tree, parents)


@pytest.fixture
def repo_path(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    repo = pygit2.init_repository(str(root))
    (root / "calc.py").write_text("def add(a, b):\n    return a - b\n", encoding="utf-8")
    (root / "old.py").write_text("print('bye')\n", encoding="utf-8")
    _commit_all(repo, "initial")
    return root


def test_lists_modified_deleted_and_untracked_files(repo_path: Path) -> None:
    (repo_path / "calc.py").write_text("def add(a, b):\n    return a + b\n", encoding="utf-8")
    (repo_path / "old.py").unlink()
    (repo_path / "pkg").mkdir()
    (repo_path / "pkg" / "new.py").write_text("VALUE = 1\n", encoding="utf-8")

    changes = {change.path: change for change in GitChanges(repo_path).working_tree_changes()}

    assert set(changes) == {"calc.py", "old.py", "pkg/new.py"}
    assert changes["calc.py"].status == "M"
    assert changes["old.py"].status == "D"
    assert changes["pkg/new.py"].status in {"A", "?"}
    assert "-    return a - b" in changes["calc.py"].patch
    assert "+    return a + b" in changes["calc.py"].patch
    assert "+VALUE = 1" in changes["pkg/new.py"].patch


def test_clean_tree_has_no_changes(repo_path: Path) -> None:
    assert GitChanges(repo_path).working_tree_changes() == []


def test_unborn_head_reports_every_file(tmp_path: Path) -> None:
    pygit2.init_repository(str(tmp_path))
    (tmp_path / "main.c").write_text("int main(void) { return 0; }\n", encoding="utf-8")

    changes = GitChanges(tmp_path).working_tree_changes()

    assert [change.path for change in changes] == ["main.c"]


def test_discovers_repository_from_subdirectory(repo_path: Path) -> None:
    nested = repo_path / "src" / "deep"
    nested.mkdir(parents=True)

    changes = GitChanges(nested)

    assert changes.workdir.resolve() == repo_path.resolve()


def test_non_repository_raises(tmp_path: Path) -> None:
    with pytest.raises(NotARepositoryError):
        GitChanges(tmp_path / "missing")


def test_split_patch_separates_original_and_altered_code() -> None:
    patch = (
        "diff --git a/calc.py b/calc.py\n"
        "index 3b18e51..a1c2d3f 100644\n"
        "--- a/calc.py\n"
        "+++ b/calc.py\n"
        "@@ -1,3 +1,3 @@\n"
        " def add(a, b):\n"
        "-    return a - b\n"
        "+    return a + b\n"
        "--- not a header once inside a hunk\n"
        "\\ No newline at end of file\n"
    )

    original, altered = split_patch(patch)

    assert original == "def add(a, b):\n    return a - b\n-- not a header once inside a hunk"
    assert altered == "def add(a, b):\n    return a + b"


def test_split_patch_of_new_file() -> None:
    patch = "new file mode 100644\n--- /dev/null\n+++ b/new.py\n@@ -0,0 +1,2 @@\n+A = 1\n+B = 2\n"

    assert split_patch(patch) == ("", "A = 1\nB = 2")


def test_split_patch_skips_mode_change_headers() -> None:
    patch = (
        "diff --git a/run.sh b/run.sh\n"
        "old mode 100644\n"
        "new mode 100755\n"
        "index 1111111..2222222\n"
        "--- a/run.sh\n"
        "+++ b/run.sh\n"
        "@@ -1 +1 @@\n"
        "-echo a\n"
        "+echo b\n"
    )

    assert split_patch(patch) == ("echo a", "echo b")


def test_split_patch_without_hunks_is_empty() -> None:
    patch = "diff --git a/logo.png b/logo.png\nindex 1111111..2222222\nBinary files a/logo.png and b/logo.png differ\n"

    assert split_patch(patch) == ("", "")
