"""Prompt-command assistant core: stream AI completions into editor buffers."""

__version__ = "0.4.0"

__all__ = ["__version__"]
