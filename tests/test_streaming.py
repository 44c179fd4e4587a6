from __future__ import annotations

import itertools

import pytest

from inkwell.ai.ai_types import PLAIN_TEXT_SYSTEM_INSTRUCTION, StreamEvent, StreamEventKind
from inkwell.ai.errors import RemoteCountError, StreamInterruptedError
from inkwell.ai.orchestration.budget import calculate_token_budget
from inkwell.ai.orchestration.streaming import StreamingOrchestrator, StreamState
from tests.helpers import FakeCompletionClient, make_config, scripted_events

_VISIBLE = "The heroine is left-handed in chapter two but right-handed in chapter five."
_THINKING = "Compare handedness across chapters."


def _chunks(text: str, size: int) -> list[str]:
    return [text[index : index + size] for index in range(0, len(text), size)]


def _fake_clock(step: float = 1.5):
    counter = itertools.count()
    return lambda: next(counter) * step


def _budget():
    return calculate_token_budget(1_000, make_config())


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [1, 2, 50])
async def test_chunking_does_not_change_result(size: int) -> None:
    events = scripted_events(thinking=_chunks(_THINKING, size), visible=_chunks(_VISIBLE, size))
    orchestrator = StreamingOrchestrator(FakeCompletionClient(events))

    result = await orchestrator.run("prompt", _budget())

    assert result.visible_text == _VISIBLE
    assert result.thinking_text == _THINKING
    assert result.visible_word_count == 12
    assert result.response_token_count == 12
    assert result.complete is True
    assert orchestrator.state is StreamState.COMPLETED


@pytest.mark.asyncio
async def test_interleaved_deltas_are_kept_in_arrival_order() -> None:
    events = [
        StreamEvent.thinking("a"),
        StreamEvent.visible("1"),
        StreamEvent.thinking("b"),
        StreamEvent.visible("2"),
    ]
    seen: list[StreamEventKind] = []
    orchestrator = StreamingOrchestrator(
        FakeCompletionClient(events),
        on_progress=lambda event: seen.append(event.kind),
    )

    result = await orchestrator.run("prompt", _budget())

    assert result.thinking_text == "ab"
    assert result.visible_text == "12"
    assert seen == [
        StreamEventKind.THINKING,
        StreamEventKind.VISIBLE,
        StreamEventKind.THINKING,
        StreamEventKind.VISIBLE,
    ]


@pytest.mark.asyncio
async def test_request_uses_budget_and_plain_text_instruction() -> None:
    client = FakeCompletionClient(scripted_events(visible=["ok"]))
    budget = calculate_token_budget(106_448, make_config())

    await StreamingOrchestrator(client).run("the prompt", budget)

    options = client.options[0]
    assert client.prompts == ["the prompt"]
    assert options.max_tokens == 93_552
    assert options.thinking_budget == 32_000
    assert options.system == PLAIN_TEXT_SYSTEM_INSTRUCTION


@pytest.mark.asyncio
async def test_failure_mid_stream_surfaces_partial_result() -> None:
    events = scripted_events(thinking=["think"], visible=["partial ", "text ", "lost"])
    client = FakeCompletionClient(events, fail_after=3)
    orchestrator = StreamingOrchestrator(client)

    with pytest.raises(StreamInterruptedError) as excinfo:
        await orchestrator.run("prompt", _budget())

    partial = excinfo.value.partial
    assert partial.complete is False
    assert partial.visible_text == "partial text "
    assert partial.thinking_text == "think"
    assert partial.response_token_count == 0
    assert orchestrator.state is StreamState.FAILED
    assert client.count_calls == []


@pytest.mark.asyncio
async def test_count_failure_after_stream_marks_failed() -> None:
    client = FakeCompletionClient(scripted_events(visible=["done"]), fail_count_on_call=1)
    orchestrator = StreamingOrchestrator(client)

    with pytest.raises(RemoteCountError):
        await orchestrator.run("prompt", _budget())

    assert orchestrator.state is StreamState.FAILED


@pytest.mark.asyncio
async def test_orchestrator_cannot_be_reused() -> None:
    orchestrator = StreamingOrchestrator(FakeCompletionClient(scripted_events(visible=["x"])))
    await orchestrator.run("prompt", _budget())

    with pytest.raises(RuntimeError):
        await orchestrator.run("prompt", _budget())


@pytest.mark.asyncio
async def test_elapsed_time_comes_from_injected_clock() -> None:
    orchestrator = StreamingOrchestrator(
        FakeCompletionClient(scripted_events(visible=["x"])),
        clock=_fake_clock(61.25),
    )

    result = await orchestrator.run("prompt", _budget())

    assert result.elapsed_seconds == pytest.approx(61.25)
    assert result.elapsed_display == "1m 1.25s"
    assert orchestrator.state is StreamState.COMPLETED
