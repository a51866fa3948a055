"""Enum base carrying a display string alongside the stored value."""

from __future__ import annotations

from enum import Enum
from typing import Type, TypeVar

TLabeled = TypeVar("TLabeled", bound="LabeledEnum")


class LabeledEnum(str, Enum):
    """String enum whose members also expose a human-readable label.

    Members are declared as ``NAME = ("value", "Label")``; omitting the label
    reuses the value.
    """

    label: str

    def __new__(cls, value: str, label: str | None = None):
        member = str.__new__(cls, value)
        member._value_ = value
        member.label = label or value
        return member

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls: Type[TLabeled], raw: str) -> TLabeled:
        """Resolve ``raw`` against member values, names and labels (case-insensitive)."""

        probe = (raw or "").strip().lower().replace("-", "_")
        for member in cls:
            candidates = {member.value.lower(), member.name.lower(), member.label.lower()}
            if probe in candidates or probe.replace("_", " ") in candidates:
                return member
        raise ValueError(f"{raw!r} is not a valid {cls.__name__}")


def string_value(item: Enum) -> str:
    """Return the display string associated with ``item``."""

    label = getattr(item, "label", None)
    if isinstance(label, str) and label:
        return label
    return str(item.value)


__all__ = ["LabeledEnum", "string_value"]
