"""Catalog of the canned prompt commands and how each places its response."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Mapping

from ..ai.prompts import build_command_prompt
from ..streaming.types import CommandKind
from ..utils.enums import LabeledEnum


class PromptCommand(LabeledEnum):
    EXPLAIN = ("explain", "Explain")
    FIND_BUGS = ("find_bugs", "Find Bugs")
    ADD_SUMMARY = ("add_summary", "Add Summary")
    ADD_COMMENTS = ("add_comments", "Add Comments")
    ADD_TESTS = ("add_tests", "Add Tests")
    COMPLETE = ("complete", "Complete")
    OPTIMIZE = ("optimize", "Optimize")
    TRANSLATE = ("translate", "Translate")


def _fixed(kind: CommandKind) -> Callable[[str], CommandKind]:
    return lambda _selected: kind


def _comments_kind(selected_text: str) -> CommandKind:
    # Multi-line selections are rewritten with comments in place.
    body = selected_text.strip("\r\n")
    if "\n" in body or "\r" in body:
        return CommandKind.REPLACE
    return CommandKind.INSERT_BEFORE


@dataclass(frozen=True, slots=True)
class CommandDefinition:
    """Static behaviour of one prompt command."""

    command: PromptCommand
    kind_resolver: Callable[[str], CommandKind]
    commentary: bool = False
    filter_braces: bool = False
    stop_sequences: tuple[str, ...] = ()

    def resolve_kind(self, selected_text: str) -> CommandKind:
        return self.kind_resolver(selected_text)

    def build_prompt(self, selected_text: str, *, overrides: Mapping[str, str] | None = None) -> str:
        return build_command_prompt(self.command.value, selected_text, overrides=overrides)


COMMANDS: Dict[PromptCommand, CommandDefinition] = {
    PromptCommand.EXPLAIN: CommandDefinition(
        PromptCommand.EXPLAIN, _fixed(CommandKind.INSERT_BEFORE), commentary=True
    ),
    PromptCommand.FIND_BUGS: CommandDefinition(
        PromptCommand.FIND_BUGS, _fixed(CommandKind.INSERT_AFTER), commentary=True
    ),
    PromptCommand.ADD_SUMMARY: CommandDefinition(
        PromptCommand.ADD_SUMMARY,
        _fixed(CommandKind.INSERT_BEFORE),
        filter_braces=True,
        stop_sequences=("public", "private", "internal"),
    ),
    PromptCommand.ADD_COMMENTS: CommandDefinition(PromptCommand.ADD_COMMENTS, _comments_kind),
    PromptCommand.ADD_TESTS: CommandDefinition(PromptCommand.ADD_TESTS, _fixed(CommandKind.INSERT_AFTER)),
    PromptCommand.COMPLETE: CommandDefinition(PromptCommand.COMPLETE, _fixed(CommandKind.INSERT_AFTER)),
    PromptCommand.OPTIMIZE: CommandDefinition(PromptCommand.OPTIMIZE, _fixed(CommandKind.REPLACE)),
    PromptCommand.TRANSLATE: CommandDefinition(PromptCommand.TRANSLATE, _fixed(CommandKind.REPLACE)),
}


def get_command(command: PromptCommand | str) -> CommandDefinition:
    """Return the :class:`CommandDefinition` for a command member or its name."""

    member = command if isinstance(command, PromptCommand) else PromptCommand.parse(command)
    return COMMANDS[member]


__all__ = ["COMMANDS", "CommandDefinition", "PromptCommand", "get_command"]
