"""Drive one streamed completion exchange and accumulate its output."""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol

from ...utils.file_io import count_words
from ..ai_types import (
    PLAIN_TEXT_SYSTEM_INSTRUCTION,
    CompletionOptions,
    StreamEvent,
    StreamEventKind,
)
from ..errors import StreamInterruptedError
from .budget import TokenBudget

__all__ = [
    "StreamState",
    "StreamingResult",
    "StreamingOrchestrator",
    "StreamingClient",
]

LOGGER = logging.getLogger(__name__)

ProgressHook = Callable[[StreamEvent], Any]


class StreamingClient(Protocol):
    """The subset of :class:`~inkwell.ai.client.CompletionClient` used here."""

    def stream_events(self, prompt: str, options: CompletionOptions | None = None) -> Any:
        ...

    async def count_tokens(self, text: str) -> int:
        ...


class StreamState(str, Enum):
    """Lifecycle of a single exchange."""

    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class StreamingResult:
    """Accumulated output of one exchange.

    ``complete`` is ``False`` when the exchange failed and the text is partial.
    """

    visible_text: str
    thinking_text: str
    started_at: datetime
    elapsed_seconds: float
    visible_word_count: int
    response_token_count: int
    complete: bool = True

    @property
    def elapsed_display(self) -> str:
        minutes, seconds = divmod(self.elapsed_seconds, 60)
        return f"{int(minutes)}m {seconds:.2f}s"

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "visible_word_count": self.visible_word_count,
            "response_token_count": self.response_token_count,
            "visible_chars": len(self.visible_text),
            "thinking_chars": len(self.thinking_text),
            "complete": self.complete,
        }


class StreamingOrchestrator:
    """Runs one prompt through the streaming client.

    Deltas are appended strictly in arrival order. Once streaming has begun a
    failure is terminal; nothing is retried here beyond what the client does
    for the initial request. An orchestrator drives exactly one exchange.
    """

    def __init__(
        self,
        client: StreamingClient,
        *,
        system_instruction: str = PLAIN_TEXT_SYSTEM_INSTRUCTION,
        on_progress: ProgressHook | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._client = client
        self._system_instruction = system_instruction
        self._on_progress = on_progress
        self._clock = clock
        self._state = StreamState.IDLE
        self._visible: list[str] = []
        self._thinking: list[str] = []

    @property
    def state(self) -> StreamState:
        return self._state

    def build_options(self, budget: TokenBudget) -> CompletionOptions:
        return CompletionOptions(
            max_tokens=budget.max_tokens,
            thinking_budget=budget.thinking_budget,
            system=self._system_instruction,
        )

    async def run(self, prompt: str, budget: TokenBudget) -> StreamingResult:
        """Stream ``prompt`` and return the accumulated result.

        Raises:
            RuntimeError: if this orchestrator already ran.
            StreamInterruptedError: on any client failure, carrying the partial text.
        """

        if self._state is not StreamState.IDLE:
            raise RuntimeError(f"Orchestrator already used (state={self._state.value})")

        options = self.build_options(budget)
        started_at = datetime.now().astimezone()
        start = self._clock()
        self._state = StreamState.REQUESTING

        try:
            async with aclosing(self._client.stream_events(prompt, options)) as stream:
                async for event in stream:
                    if self._state is StreamState.REQUESTING:
                        self._state = StreamState.STREAMING
                    self._apply(event)
        except Exception as exc:
            self._state = StreamState.FAILED
            partial = self._snapshot(started_at, self._clock() - start, token_count=0, complete=False)
            LOGGER.warning(
                "Streaming failed after %d visible / %d thinking chars: %s",
                len(partial.visible_text),
                len(partial.thinking_text),
                exc,
            )
            raise StreamInterruptedError(
                message=f"Completion stream failed: {exc}",
                details=partial.to_dict(),
                partial=partial,
            ) from exc

        elapsed = self._clock() - start
        visible_text = "".join(self._visible)
        try:
            response_tokens = await self._client.count_tokens(visible_text)
        except Exception:
            self._state = StreamState.FAILED
            raise
        self._state = StreamState.COMPLETED
        result = self._snapshot(started_at, elapsed, token_count=response_tokens, complete=True)
        LOGGER.info(
            "Streaming completed in %s (%d words, %d tokens)",
            result.elapsed_display,
            result.visible_word_count,
            result.response_token_count,
        )
        return result

    def _apply(self, event: StreamEvent) -> None:
        if event.kind is StreamEventKind.THINKING:
            self._thinking.append(event.text)
        else:
            self._visible.append(event.text)
        if self._on_progress is not None:
            self._on_progress(event)

    def _snapshot(
        self,
        started_at: datetime,
        elapsed: float,
        *,
        token_count: int,
        complete: bool,
    ) -> StreamingResult:
        visible_text = "".join(self._visible)
        return StreamingResult(
            visible_text=visible_text,
            thinking_text="".join(self._thinking),
            started_at=started_at,
            elapsed_seconds=max(0.0, elapsed),
            visible_word_count=count_words(visible_text),
            response_token_count=token_count,
            complete=complete,
        )
