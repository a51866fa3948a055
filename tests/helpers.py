"""Shared test stubs emulating the OpenAI client surface used by chatstudio."""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Iterable, Sequence


@dataclass
class FakeEvent:
    """Simple structure emulating ChatCompletionStreamEvent attributes."""

    type: str
    delta: str | None = None
    content: str | None = None


class FakeStream:
    def __init__(self, events: Iterable[Any]):
        self._iterator = iter(list(events))

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> Any:
        try:
            item = next(self._iterator)
        except StopIteration as exc:
            raise StopAsyncIteration from exc
        if isinstance(item, BaseException):
            raise item
        return item


class FakeStreamContext:
    def __init__(self, events: Iterable[Any]):
        self._events = list(events)
        self.exited = False

    async def __aenter__(self) -> FakeStream:
        return FakeStream(self._events)

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.exited = True
        return False


class FakeCompletions:
    """Records calls and replays canned events or single responses."""

    def __init__(self, events: Iterable[Any] = (), *, response_text: str = "", errors: Sequence[BaseException] = ()):
        self._events = list(events)
        self._response_text = response_text
        self._errors = list(errors)
        self.calls: list[dict[str, Any]] = []
        self.contexts: list[FakeStreamContext] = []

    def stream(self, **kwargs: Any) -> FakeStreamContext:
        self.calls.append(kwargs)
        if self._errors:
            raise self._errors.pop(0)
        context = FakeStreamContext(self._events)
        self.contexts.append(context)
        return context

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self._errors:
            raise self._errors.pop(0)
        message = SimpleNamespace(content=self._response_text)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeModels:
    def __init__(self, ids: Sequence[str]):
        self._payload = [SimpleNamespace(id=item) for item in ids]
        self.calls = 0

    async def list(self) -> SimpleNamespace:
        self.calls += 1
        return SimpleNamespace(data=self._payload)


def make_openai_stub(
    chunks: Sequence[str] = (),
    *,
    response_text: str = "",
    errors: Sequence[BaseException] = (),
    models: Sequence[str] = ("test-model",),
) -> SimpleNamespace:
    """Return an object shaped like ``AsyncOpenAI`` for the given deltas."""

    events: list[Any] = [FakeEvent(type="chunk")]
    events.extend(FakeEvent(type="content.delta", delta=chunk) for chunk in chunks)
    events.append(FakeEvent(type="content.done", content="".join(chunks)))
    completions = FakeCompletions(events, response_text=response_text, errors=errors)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions), models=FakeModels(models))


class RecordingNotifier:
    def __init__(self) -> None:
        self.warnings: list[tuple[str, str]] = []

    def show_warning(self, title: str, message: str) -> None:
        self.warnings.append((title, message))


class RecordingStatus:
    def __init__(self) -> None:
        self.messages: list[tuple[str, int, int]] = []

    def show_progress(self, message: str, step: int, total: int) -> None:
        self.messages.append((message, step, total))
