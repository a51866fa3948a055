"""Prompt templates for the canned editor commands and the code review."""

from __future__ import annotations

from typing import Mapping

SYSTEM_PROMPT = (
    "You are a senior software engineer embedded in a code editor. "
    "Answer only with what was asked for, without greetings or closing remarks."
)

COMMAND_PROMPTS: Mapping[str, str] = {
    "explain": "Explain what the following code does, in plain prose without code blocks:",
    "find_bugs": "Find bugs in the following code and describe each one briefly, in plain prose:",
    "add_summary": (
        "Only write a documentation comment summary for the following code, "
        "using the conventions of its language. Do not repeat the code:"
    ),
    "add_comments": "Add comments to the following code and return the complete commented code only:",
    "add_tests": "Write unit tests for the following code. Return only the test code:",
    "complete": "Complete the following code. Return only the code that follows it:",
    "optimize": "Optimize the following code and return only the optimized code:",
    "translate": "Translate the following text to English and return only the translation:",
}

CODE_REVIEW_PROMPT = (
    "Review the following change of the file {file_name}. The lines starting with '-' were removed "
    "and the lines starting with '+' were added. Point out bugs, risky constructs, naming or style "
    "issues and suggest improvements. Use Markdown and fenced code blocks for code."
)


def build_command_prompt(
    command: str,
    selected_text: str,
    *,
    overrides: Mapping[str, str] | None = None,
) -> str:
    """Return the full prompt for ``command`` applied to ``selected_text``."""

    template = (overrides or {}).get(command) or COMMAND_PROMPTS.get(command)
    if template is None:
        raise KeyError(f"No prompt registered for command {command!r}")
    return f"{template.rstrip()}\n\n{selected_text}"


def build_code_review_prompt(file_name: str, patch: str, *, template: str | None = None) -> str:
    header = (template or CODE_REVIEW_PROMPT).replace("{file_name}", file_name)
    return f"{header}\n\n{patch}"


__all__ = [
    "CODE_REVIEW_PROMPT",
    "COMMAND_PROMPTS",
    "SYSTEM_PROMPT",
    "build_code_review_prompt",
    "build_command_prompt",
]
