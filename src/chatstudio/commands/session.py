"""Command handler running one prompt command against the active document."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Protocol

from ..ai.client import ClientSettings, CompletionClient
from ..editor.document_model import DocumentBuffer
from ..editor.mutations import BufferMutation
from ..editor.selection_gateway import SelectionGateway
from ..errors import ChatStudioError, MissingAPIKeyError
from ..services import telemetry
from ..services.settings import Settings
from ..streaming.controller import ResponseMode, StreamInsertionController
from ..streaming.types import InvocationContext
from .catalog import CommandDefinition, PromptCommand, get_command

LOGGER = logging.getLogger(__name__)

EXTENSION_NAME = "Chat Studio"
MESSAGE_WAITING = "Waiting for the AI response..."
MESSAGE_RECEIVING = "Receiving the AI response..."
_END_OF_STREAM = object()


class Notifier(Protocol):
    """Blocking notification surface of the host."""

    def show_warning(self, title: str, message: str) -> None:
        ...


class StatusReporter(Protocol):
    def show_progress(self, message: str, step: int, total: int) -> None:
        ...


class ChatSink(Protocol):
    """Alternate destination receiving the prompt instead of the document."""

    def send(self, prompt: str) -> Awaitable[None]:
        ...


class LoggingNotifier:
    """Notifier used when no host UI is attached."""

    def show_warning(self, title: str, message: str) -> None:
        LOGGER.warning("%s: %s", title, message)


class LoggingStatusReporter:
    def show_progress(self, message: str, step: int, total: int) -> None:
        LOGGER.info("[%s/%s] %s", step, total, message)


@dataclass(slots=True)
class SessionResult:
    """Outcome of one command invocation."""

    command: PromptCommand
    context: InvocationContext | None = None
    mutations_applied: int = 0
    response_text: str = ""
    dropped_chunks: Mapping[str, int] = field(default_factory=dict)
    apply_failures: int = 0
    routed_to_chat: bool = False
    cancelled: bool = False
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _default_client_factory(settings: Settings) -> CompletionClient:
    return CompletionClient(ClientSettings.from_settings(settings))


class CommandSession:
    """Runs prompt commands and streams their responses into the document.

    Chunks delivered by the completion client are pushed onto a
    single-consumer queue; only the consumer task touches the document and
    the :class:`StreamInsertionController`, so both are owned by one task
    for the whole invocation. Edits already applied are never rolled back
    when the stream fails part way.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: SelectionGateway,
        *,
        client: CompletionClient | None = None,
        client_factory: Callable[[Settings], CompletionClient] = _default_client_factory,
        notifier: Notifier | None = None,
        status: StatusReporter | None = None,
        chat_sink: ChatSink | None = None,
        format_on_end: bool = True,
    ) -> None:
        self._settings = settings
        self._gateway = gateway
        self._client = client
        self._client_factory = client_factory
        self._notifier = notifier or LoggingNotifier()
        self._status = status or LoggingStatusReporter()
        self._chat_sink = chat_sink
        self._format_on_end = format_on_end

    @property
    def settings(self) -> Settings:
        return self._settings

    async def execute(
        self,
        command: PromptCommand | str,
        *,
        route_to_chat: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> SessionResult:
        """Run ``command`` on the current selection and return the outcome."""

        definition = get_command(command)
        result = SessionResult(command=definition.command)
        try:
            await self._run(definition, result, route_to_chat=route_to_chat, cancel_event=cancel_event)
        except Exception as exc:
            result.error = exc
            message = str(exc) or exc.__class__.__name__
            if not isinstance(exc, ChatStudioError):
                LOGGER.exception("Command %s failed", definition.command.value)
            self._status.show_progress(message, 2, 2)
            self._notifier.show_warning(EXTENSION_NAME, message)
        telemetry.emit(
            "command.completed",
            {
                "command": definition.command.value,
                "ok": result.ok,
                "mutations": result.mutations_applied,
                "dropped": sum(result.dropped_chunks.values()),
            },
        )
        return result

    async def _run(
        self,
        definition: CommandDefinition,
        result: SessionResult,
        *,
        route_to_chat: bool,
        cancel_event: asyncio.Event | None,
    ) -> None:
        if not self._settings.api_key and self._client is None:
            raise MissingAPIKeyError()

        document = self._gateway.require_document()
        context = self._gateway.capture(definition.resolve_kind(document.selected_text), document=document)
        result.context = context
        prompt = definition.build_prompt(context.selection_text, overrides=self._settings.command_prompts)

        if route_to_chat:
            if self._chat_sink is None:
                raise ChatStudioError("No chat window is available to receive the request.")
            await self._chat_sink.send(prompt)
            result.routed_to_chat = True
            return
        if cancel_event is not None and cancel_event.is_set():
            LOGGER.debug("Command %s cancelled before the request started", definition.command.value)
            result.cancelled = True
            return

        client = self._client or self._client_factory(self._settings)
        self._client = client
        mode = ResponseMode.SINGLE if self._settings.single_response else ResponseMode.STREAMING
        controller = StreamInsertionController(
            mode=mode,
            commentary=definition.commentary,
            filter_braces=definition.filter_braces,
            kind_resolver=definition.resolve_kind,
            line_break=self._settings.line_break or "\n",
            line_wrap_limit=self._settings.line_wrap_limit,
        )
        controller.begin(context)
        self._status.show_progress(MESSAGE_WAITING, 1, 2)
        stop = definition.stop_sequences or None

        try:
            if mode is ResponseMode.SINGLE:
                text = await client.request_single(prompt, stop=stop)
                result.response_text = text
                self._apply_chunk(controller, document, text, result, first=True)
            else:
                result.response_text = await self._stream(client, prompt, stop, controller, document, result)
        finally:
            result.dropped_chunks = controller.dropped_chunks

        controller.end()
        if self._format_on_end:
            document.format_document()

    async def _stream(
        self,
        client: CompletionClient,
        prompt: str,
        stop: tuple[str, ...] | None,
        controller: StreamInsertionController,
        document: DocumentBuffer,
        result: SessionResult,
    ) -> str:
        queue: asyncio.Queue[Any] = asyncio.Queue()
        consumer = asyncio.create_task(self._consume(queue, controller, document, result))

        def enqueue(chunk: str) -> None:
            if consumer.done():
                raise ChatStudioError("The document stopped accepting the response.")
            queue.put_nowait(chunk)

        try:
            return await client.request_stream(prompt, enqueue, stop=stop)
        finally:
            queue.put_nowait(_END_OF_STREAM)
            await consumer

    async def _consume(
        self,
        queue: "asyncio.Queue[Any]",
        controller: StreamInsertionController,
        document: DocumentBuffer,
        result: SessionResult,
    ) -> None:
        first = True
        while True:
            chunk = await queue.get()
            if chunk is _END_OF_STREAM:
                return
            self._apply_chunk(controller, document, chunk, result, first=first)
            first = False

    def _apply_chunk(
        self,
        controller: StreamInsertionController,
        document: DocumentBuffer,
        chunk: str,
        result: SessionResult,
        *,
        first: bool,
    ) -> None:
        if first:
            self._status.show_progress(MESSAGE_RECEIVING, 2, 2)
        mutations: List[BufferMutation] = controller.on_chunk(chunk)
        if first:
            # Setup edits must land; a failure here aborts the invocation.
            result.mutations_applied += document.apply_all(mutations)
            return
        for mutation in mutations:
            try:
                document.apply(mutation)
            except ChatStudioError as exc:
                result.apply_failures += 1
                LOGGER.debug("Skipping mutation %r: %s", mutation, exc)
                telemetry.emit("stream.apply_failed", {"reason": getattr(exc, "reason", "error")})
            else:
                result.mutations_applied += 1


__all__ = [
    "ChatSink",
    "CommandSession",
    "EXTENSION_NAME",
    "LoggingNotifier",
    "LoggingStatusReporter",
    "Notifier",
    "SessionResult",
    "StatusReporter",
]
