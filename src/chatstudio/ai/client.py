"""Async completion client built around OpenAI-compatible endpoints."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Sequence

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import CompletionError, MissingAPIKeyError
from .prompts import SYSTEM_PROMPT

LOGGER = logging.getLogger(__name__)

ChunkCallback = Callable[[str], "Awaitable[None] | None"]
_RETRYABLE_ERRORS = (
    APIError,
    APIStatusError,
    APIConnectionError,
    RateLimitError,
    httpx.TimeoutException,
)
_FATAL_ERRORS = (AuthenticationError, PermissionDeniedError, BadRequestError, NotFoundError)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the completion client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    temperature: float | None = 0.2
    max_tokens: int | None = None
    default_headers: Mapping[str, str] | None = None
    system_prompt: str = SYSTEM_PROMPT
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: Any) -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            default_headers=dict(settings.default_headers or {}) or None,
            debug_logging=settings.debug_logging,
        )


class CompletionClient:
    """Request streamed or single completions for a prompt, with retries."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)
        self._models_cache: List[str] | None = None
        self._models_lock = asyncio.Lock()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def stream_completion(
        self,
        prompt: str,
        *,
        stop: Sequence[str] | None = None,
    ) -> AsyncIterator[str]:
        """Yield the text deltas of a streamed completion for ``prompt``.

        Retries only happen before the first delta is yielded; once text has
        reached the caller a failure is raised as :class:`CompletionError`.
        """

        payload = self._build_payload(prompt, stop)
        LOGGER.debug("Starting streamed completion via %s", self._settings.model)
        if self._settings.debug_logging:
            self._log_payload(payload)

        emitted = 0
        try:
            async for attempt in self._retrying():
                with attempt:
                    try:
                        async with self._client.chat.completions.stream(**payload) as stream:
                            async for event in stream:
                                delta = self._delta_text(event)
                                if delta is None:
                                    continue
                                emitted += 1
                                yield delta
                    except _RETRYABLE_ERRORS as exc:
                        if emitted:
                            raise CompletionError(f"Completion stream interrupted: {exc}") from exc
                        raise
        except RetryError as exc:  # pragma: no cover - reraise=True surfaces the original error
            raise CompletionError(str(exc)) from exc
        except _FATAL_ERRORS as exc:
            raise CompletionError(_describe_error(exc)) from exc
        except _RETRYABLE_ERRORS as exc:
            raise CompletionError(_describe_error(exc)) from exc

    async def request_stream(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        *,
        stop: Sequence[str] | None = None,
    ) -> str:
        """Invoke ``on_chunk`` for every delta and return the full response text."""

        parts: List[str] = []
        # A failing callback must still close the HTTP stream.
        async with aclosing(self.stream_completion(prompt, stop=stop)) as deltas:
            async for delta in deltas:
                parts.append(delta)
                result = on_chunk(delta)
                if inspect.isawaitable(result):
                    await result
        return "".join(parts)

    async def request_single(self, prompt: str, *, stop: Sequence[str] | None = None) -> str:
        """Return the complete response text for ``prompt`` in one request."""

        payload = self._build_payload(prompt, stop)
        LOGGER.debug("Requesting single completion via %s", self._settings.model)
        if self._settings.debug_logging:
            self._log_payload(payload)
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.chat.completions.create(**payload)
        except (_FATAL_ERRORS + _RETRYABLE_ERRORS) as exc:
            raise CompletionError(_describe_error(exc)) from exc
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return str(getattr(message, "content", None) or "")

    async def list_models(self, *, force_refresh: bool = False) -> List[str]:
        """Return the model identifiers exposed by the endpoint."""

        if self._models_cache is not None and not force_refresh:
            return list(self._models_cache)

        async with self._models_lock:
            if self._models_cache is not None and not force_refresh:
                return list(self._models_cache)
            response = await self._client.models.list()
            models = [item.id for item in response.data if getattr(item, "id", None)]
            self._models_cache = models
            return list(models)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        if not settings.api_key:
            raise MissingAPIKeyError()
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
        )

    def _build_payload(self, prompt: str, stop: Sequence[str] | None) -> Dict[str, Any]:
        if not prompt or not prompt.strip():
            raise ValueError("A prompt is required to request a completion")
        messages: List[Dict[str, str]] = []
        if self._settings.system_prompt:
            messages.append({"role": "system", "content": self._settings.system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload: Dict[str, Any] = {"model": self._settings.model, "messages": messages}
        if self._settings.temperature is not None:
            payload["temperature"] = self._settings.temperature
        if self._settings.max_tokens is not None:
            payload["max_tokens"] = self._settings.max_tokens
        if stop:
            payload["stop"] = list(stop)
        return payload

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS) & retry_if_not_exception_type(_FATAL_ERRORS),
        )

    @staticmethod
    def _delta_text(event: Any) -> str | None:
        if getattr(event, "type", None) != "content.delta":
            return None
        delta = getattr(event, "delta", None)
        if delta is None:
            return None
        return str(delta)

    def _log_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)


def _describe_error(exc: BaseException) -> str:
    if isinstance(exc, AuthenticationError):
        return "The API key was rejected by the completion endpoint."
    message = getattr(exc, "message", None) or str(exc)
    return str(message) or exc.__class__.__name__


__all__ = ["ChunkCallback", "ClientSettings", "CompletionClient"]
