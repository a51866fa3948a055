"""Exception hierarchy shared by the command and editor layers."""

from __future__ import annotations


class ChatStudioError(RuntimeError):
    """Base class for errors surfaced to the user as a blocking notification."""


class MissingAPIKeyError(ChatStudioError):
    """Raised when a command is invoked before an API key was configured."""

    def __init__(self) -> None:
        super().__init__("Please, set the OpenAI API key in the settings before using this command.")


class NoActiveDocumentError(ChatStudioError):
    """Raised when no document is open in the editor."""


class NoSelectionError(ChatStudioError):
    """Raised when a command requires selected code and nothing is selected."""

    def __init__(self) -> None:
        super().__init__("Please select the code.")


class CompletionError(ChatStudioError):
    """Raised when the completion API fails after all retries."""


class BufferEditError(ChatStudioError):
    """Raised when a mutation cannot be applied to the document buffer."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = "out_of_range",
        position: int | None = None,
        length: int | None = None,
        buffer_length: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.position = position
        self.length = length
        self.buffer_length = buffer_length

    def details(self) -> dict[str, object]:
        return {
            "reason": self.reason,
            "position": self.position,
            "length": self.length,
            "buffer_length": self.buffer_length,
        }


__all__ = [
    "BufferEditError",
    "ChatStudioError",
    "CompletionError",
    "MissingAPIKeyError",
    "NoActiveDocumentError",
    "NoSelectionError",
]
