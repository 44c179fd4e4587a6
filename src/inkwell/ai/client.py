"""Async completion client built around OpenAI-compatible endpoints.

The client is the only component that talks to the completion service. It
owns the retry and timeout policy and exposes three operations: token
counting, a single-shot completion, and a streamed completion that yields
thinking and visible deltas in generation order.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping

import httpx
import tiktoken
from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..services.settings import Configuration
from .ai_types import Completion, CompletionOptions, StreamEvent, StreamEventKind, TokenCounterProtocol
from .errors import RemoteCountError, RemoteStreamError

LOGGER = logging.getLogger(__name__)
_DEFAULT_BYTES_PER_TOKEN = 4
_FALLBACK_ENCODING = "cl100k_base"
_APPROXIMATE_ENCODING_WARNED: set[str] = set()
_REASONING_FIELDS: tuple[str, ...] = ("reasoning_content", "reasoning", "thinking")
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}

# Failures worth repeating before any output has been delivered.
_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
    httpx.TimeoutException,
)
# Tokenizer tables are downloaded on first use; network failures surface as OSError.
_COUNT_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OSError,)

ThinkingCallback = Callable[[str], Any]
VisibleCallback = Callable[[str], Any]


class ApproxByteCounter(TokenCounterProtocol):
    """Byte-length token estimate for when tokenizer tables are unavailable.

    Roughly four UTF-8 bytes per token for English prose; any non-empty text
    counts as at least one token.
    """

    def __init__(self, *, model_name: str | None = None, bytes_per_token: int = _DEFAULT_BYTES_PER_TOKEN) -> None:
        if bytes_per_token < 1:
            raise ValueError("bytes_per_token must be at least 1")
        self.model_name = model_name
        self.bytes_per_token = bytes_per_token

    def count(self, text: str) -> int:
        size = len(text.encode("utf-8", errors="ignore")) if text else 0
        return math.ceil(size / self.bytes_per_token)


class TiktokenCounter(TokenCounterProtocol):
    """Token counter backed by OpenAI's tiktoken package.

    The encoding is loaded on the first call to :meth:`count` because tiktoken
    fetches its tables over the network the first time they are needed.
    Models tiktoken does not know (every Claude model) are counted with
    ``cl100k_base``, so budgets built on these counts are approximate.
    """

    def __init__(self, model_name: str, *, encoding_name: str | None = None) -> None:
        if not model_name:
            raise ValueError("model_name is required for TiktokenCounter")
        self.model_name = model_name
        self._encoding_name = encoding_name
        self._encoding: Any | None = None

    def count(self, text: str) -> int:
        if not text:
            return 0
        encoding = self._load_encoding()
        return len(encoding.encode(text, disallowed_special=()))

    def _load_encoding(self) -> Any:
        if self._encoding is not None:
            return self._encoding
        if self._encoding_name:
            self._encoding = tiktoken.get_encoding(self._encoding_name)
            return self._encoding
        try:
            self._encoding = tiktoken.encoding_for_model(self.model_name)
        except KeyError:
            _log_approximate_encoding_once(self.model_name)
            self._encoding = tiktoken.get_encoding(_FALLBACK_ENCODING)
        return self._encoding


class TokenCounterRegistry:
    """Registry maintaining tokenizer implementations per model."""

    def __init__(self, *, fallback: TokenCounterProtocol | None = None) -> None:
        self._fallback = fallback or ApproxByteCounter()
        self._counters: Dict[str, TokenCounterProtocol] = {}

    def register(self, model_name: str, counter: TokenCounterProtocol) -> None:
        key = self._normalize_key(model_name)
        if not key:
            raise ValueError("model_name is required for token counter registration")
        self._counters[key] = counter

    def has(self, model_name: str | None) -> bool:
        key = self._normalize_key(model_name)
        return bool(key and key in self._counters)

    def get(self, model_name: str | None = None) -> TokenCounterProtocol:
        key = self._normalize_key(model_name)
        if key and key in self._counters:
            return self._counters[key]
        return self._fallback

    @staticmethod
    def _normalize_key(model_name: str | None) -> str:
        return (model_name or "").strip().lower()


def _log_approximate_encoding_once(model_name: str) -> None:
    if model_name in _APPROXIMATE_ENCODING_WARNED:
        return
    _APPROXIMATE_ENCODING_WARNED.add(model_name)
    LOGGER.warning(
        "tiktoken has no encoding for model %s; counting with %s, so prompt sizes "
        "and token budgets are approximate",
        model_name,
        _FALLBACK_ENCODING,
    )


@dataclass(slots=True)
class ClientSettings:
    """Connection settings for the completion endpoint.

    Budget and retry counts come from :class:`Configuration`; this holds only
    what is needed to reach the service.
    """

    base_url: str | None = None
    api_key: str | None = None
    organization: str | None = None
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    feature_header: str = "anthropic-beta"
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


def request_timeout(config: Configuration) -> float | None:
    """Per-request timeout in seconds; a configured 0 disables the timeout."""

    seconds = config.request_timeout_seconds
    return float(seconds) if seconds else None


def load_client_settings(env: Mapping[str, str] | None = None) -> ClientSettings:
    """Build :class:`ClientSettings` from ``INKWELL_*`` environment variables."""

    environment = os.environ if env is None else env
    debug_flag = (environment.get("INKWELL_DEBUG_LOGGING") or "").strip().lower()
    return ClientSettings(
        base_url=environment.get("INKWELL_BASE_URL") or None,
        api_key=environment.get("INKWELL_API_KEY") or None,
        organization=environment.get("INKWELL_ORGANIZATION") or None,
        debug_logging=debug_flag in _TRUE_VALUES,
    )


class CompletionClient:
    """Async client providing token counting and streaming with retry semantics."""

    def __init__(
        self,
        config: Configuration,
        settings: ClientSettings | None = None,
        *,
        client: AsyncOpenAI | None = None,
        token_registry: TokenCounterRegistry | None = None,
    ) -> None:
        self._config = config
        self._settings = settings or ClientSettings()
        self._client = client or self._build_client(config, self._settings)
        self._token_registry = token_registry or TokenCounterRegistry()
        self._register_default_token_counter()

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def count_tokens(self, text: str) -> int:
        """Return the token count for ``text``.

        Raises:
            RemoteCountError: when counting keeps failing after the retry budget.
        """

        if not text:
            return 0
        counter = self.get_token_counter()
        timeout = request_timeout(self._config)
        try:
            async for attempt in self._retrying(_COUNT_TRANSIENT_ERRORS):
                with attempt:
                    return await asyncio.wait_for(asyncio.to_thread(counter.count, text), timeout)
        except Exception as exc:
            LOGGER.warning("Token counting failed for %s: %s", self._config.model_id, exc)
            raise RemoteCountError(
                message=f"Token counting failed: {exc}",
                details={"model": self._config.model_id},
            ) from exc
        raise RemoteCountError(message="Token counting produced no result")  # pragma: no cover

    async def complete_once(self, prompt: str, options: CompletionOptions | None = None) -> Completion:
        """Run a single blocking completion and return its visible and thinking text."""

        payload = self._build_payload(prompt, options or CompletionOptions())
        LOGGER.debug("Starting single-shot completion via %s", payload["model"])
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)
        try:
            async for attempt in self._retrying(_TRANSIENT_ERRORS):
                with attempt:
                    response = await self._client.chat.completions.create(**payload)
        except (APIError, httpx.HTTPError) as exc:
            raise RemoteStreamError(
                message=f"Completion request failed: {exc}",
                details={"model": payload["model"]},
            ) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            return Completion(visible_text="")
        message = getattr(choices[0], "message", None)
        return Completion(
            visible_text=str(getattr(message, "content", None) or ""),
            thinking_text=_extract_reasoning(message),
        )

    async def stream_events(
        self,
        prompt: str,
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream thinking and visible deltas in arrival order.

        The initial request is retried while nothing has been delivered. Once
        a delta has been yielded any failure is terminal and raises
        :class:`RemoteStreamError`.
        """

        payload = self._build_payload(prompt, options or CompletionOptions())
        LOGGER.debug(
            "Starting streamed completion via %s (max_tokens=%s)",
            payload["model"],
            payload.get("max_tokens"),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        delivered = 0
        try:
            async for attempt in self._retrying(_TRANSIENT_ERRORS):
                with attempt:
                    try:
                        async with self._client.chat.completions.stream(**payload) as stream:
                            async for event in stream:
                                for normalized in self._normalize_stream_event(event):
                                    delivered += 1
                                    yield normalized
                    except (APIError, httpx.HTTPError) as exc:
                        if delivered:
                            raise RemoteStreamError(
                                message=f"Completion stream failed after {delivered} delta(s): {exc}",
                                details={"model": payload["model"], "deltas": delivered},
                            ) from exc
                        raise
                    break
        except (APIError, httpx.HTTPError) as exc:
            raise RemoteStreamError(
                message=f"Completion request failed: {exc}",
                details={"model": payload["model"]},
            ) from exc

    async def stream_complete(
        self,
        prompt: str,
        options: CompletionOptions | None,
        on_thinking: ThinkingCallback | None,
        on_visible: VisibleCallback | None,
    ) -> None:
        """Callback form of :meth:`stream_events`."""

        async for event in self.stream_events(prompt, options):
            callback = on_thinking if event.kind is StreamEventKind.THINKING else on_visible
            if callback is None:
                continue
            result = callback(event.text)
            if inspect.isawaitable(result):
                await result

    def get_token_counter(self) -> TokenCounterProtocol:
        return self._token_registry.get(self._config.model_id)

    def _build_client(self, config: Configuration, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=request_timeout(config),
            max_retries=0,
            default_headers=headers,
        )

    def _register_default_token_counter(self) -> None:
        model_name = self._config.model_id.strip()
        if not model_name or self._token_registry.has(model_name):
            return
        self._token_registry.register(model_name, TiktokenCounter(model_name))

    def _retrying(self, errors: tuple[type[BaseException], ...]) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(0, self._config.max_retries) + 1),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(errors),
        )

    def _build_payload(self, prompt: str, options: CompletionOptions) -> Dict[str, Any]:
        if not prompt:
            raise ValueError("A non-empty prompt is required")
        messages: List[Dict[str, str]] = []
        if options.system:
            messages.append({"role": "system", "content": options.system})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": options.model or self._config.model_id,
            "messages": messages,
            "max_tokens": options.max_tokens or self._config.max_output_tokens,
        }
        thinking_budget = (
            options.thinking_budget
            if options.thinking_budget is not None
            else self._config.thinking_budget_tokens
        )
        if thinking_budget > 0:
            payload["extra_body"] = {
                "thinking": {"type": "enabled", "budget_tokens": thinking_budget}
            }
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if self._config.enabled_features:
            payload["extra_headers"] = {
                self._settings.feature_header: ",".join(sorted(self._config.enabled_features))
            }
        return payload

    def _normalize_stream_event(self, event: Any) -> List[StreamEvent]:
        event_type = getattr(event, "type", None)
        if event_type == "content.delta":
            delta_text = getattr(event, "delta", None)
            return [StreamEvent.visible(str(delta_text))] if delta_text else []
        if event_type == "chunk":
            chunk = getattr(event, "chunk", None)
            choices = getattr(chunk, "choices", None) or []
            events: List[StreamEvent] = []
            for choice in choices:
                reasoning = _extract_reasoning(getattr(choice, "delta", None))
                if reasoning:
                    events.append(StreamEvent.thinking(reasoning))
            return events
        return []

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


def _extract_reasoning(source: Any) -> str:
    if source is None:
        return ""
    for name in _REASONING_FIELDS:
        value = getattr(source, name, None)
        if isinstance(value, str) and value:
            return value
    return ""


__all__ = [
    "ApproxByteCounter",
    "TiktokenCounter",
    "TokenCounterRegistry",
    "ClientSettings",
    "CompletionClient",
    "load_client_settings",
    "request_timeout",
]
