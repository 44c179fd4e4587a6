"""Shared typing contracts for the completion pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class TokenCounterProtocol(Protocol):
    """Protocol describing tokenizer implementations."""

    model_name: str | None

    def count(self, text: str) -> int:
        """Return the precise token count for *text*."""
        ...


# Fixed instruction shared by every tool so output is plain text regardless of
# what the underlying model defaults to.
PLAIN_TEXT_SYSTEM_INSTRUCTION = (
    "CRITICAL INSTRUCTION: NO Markdown formatting of ANY kind. Never use headers, bullets, "
    "or any formatting symbols. Plain text only with standard punctuation."
)


@dataclass(slots=True, frozen=True)
class CompletionOptions:
    """Per-request knobs passed to the completion client.

    ``None`` values fall back to the client's configuration.
    """

    max_tokens: int | None = None
    thinking_budget: int | None = None
    system: str | None = None
    model: str | None = None
    temperature: float | None = None


class StreamEventKind(str, Enum):
    """Kinds of delta carried by a streaming exchange."""

    THINKING = "thinking"
    VISIBLE = "visible"


@dataclass(slots=True, frozen=True)
class StreamEvent:
    """One incremental fragment of a streamed completion."""

    kind: StreamEventKind
    text: str

    @classmethod
    def thinking(cls, text: str) -> "StreamEvent":
        return cls(kind=StreamEventKind.THINKING, text=text)

    @classmethod
    def visible(cls, text: str) -> "StreamEvent":
        return cls(kind=StreamEventKind.VISIBLE, text=text)


@dataclass(slots=True, frozen=True)
class Completion:
    """Result of a single-shot completion."""

    visible_text: str
    thinking_text: str = ""


__all__ = [
    "TokenCounterProtocol",
    "PLAIN_TEXT_SYSTEM_INSTRUCTION",
    "CompletionOptions",
    "StreamEventKind",
    "StreamEvent",
    "Completion",
]
