"""Prompt commands and the session that runs them."""

from .catalog import COMMANDS, CommandDefinition, PromptCommand, get_command
from .session import CommandSession, SessionResult

__all__ = ["COMMANDS", "CommandSession", "CommandDefinition", "PromptCommand", "SessionResult", "get_command"]
