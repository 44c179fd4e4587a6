"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from inkwell.ai.ai_types import CompletionOptions, StreamEvent
from inkwell.ai.errors import RemoteCountError, RemoteStreamError
from inkwell.services.settings import Configuration, default_settings

FIXED_MOMENT = datetime(2026, 10, 17, 15, 4, 5, tzinfo=timezone.utc)


class FakeCompletionClient:
    """Stand-in for ``CompletionClient`` that replays scripted stream events.

    Token counts are whitespace word counts so tests can reason about them.

    Example:
        from tests.helpers import FakeCompletionClient, scripted_events

        client = FakeCompletionClient(scripted_events(visible=["Hello"]))
    """

    def __init__(
        self,
        events: Iterable[StreamEvent] = (),
        *,
        fail_after: int | None = None,
        count_error: Exception | None = None,
        fail_count_on_call: int | None = None,
    ) -> None:
        self.events = list(events)
        self.fail_after = fail_after
        self.count_error = count_error
        self.fail_count_on_call = fail_count_on_call
        self.prompts: list[str] = []
        self.options: list[CompletionOptions | None] = []
        self.count_calls: list[str] = []
        self.closed = False

    @property
    def stream_calls(self) -> int:
        return len(self.prompts)

    async def count_tokens(self, text: str) -> int:
        self.count_calls.append(text)
        if self.count_error is not None:
            raise self.count_error
        if self.fail_count_on_call is not None and len(self.count_calls) == self.fail_count_on_call:
            raise RemoteCountError(message="Token counting failed: offline")
        return len(text.split())

    async def stream_events(self, prompt: str, options: CompletionOptions | None = None):
        self.prompts.append(prompt)
        self.options.append(options)
        for index, event in enumerate(self.events):
            if self.fail_after is not None and index == self.fail_after:
                raise RemoteStreamError(message="Completion stream failed: connection reset")
            yield event
        if self.fail_after is not None and self.fail_after >= len(self.events):
            raise RemoteStreamError(message="Completion stream failed: connection reset")

    async def aclose(self) -> None:
        self.closed = True


def make_config(**overrides: Any) -> Configuration:
    """Default configuration with settings-store keys overridden."""
    payload = default_settings()
    payload.update(overrides)
    return Configuration.from_settings(payload)


def scripted_events(thinking: Iterable[str] = (), visible: Iterable[str] = ()) -> list[StreamEvent]:
    return [StreamEvent.thinking(text) for text in thinking] + [
        StreamEvent.visible(text) for text in visible
    ]
