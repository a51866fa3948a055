"""Completion client and prompt templates."""

from .client import ClientSettings, CompletionClient

__all__ = ["ClientSettings", "CompletionClient"]
