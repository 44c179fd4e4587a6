from __future__ import annotations

from pathlib import Path

import pytest

from inkwell.ai.errors import ErrorCode, UnknownToolError
from inkwell.ai.tool_system import ToolSystem, initialize_tool_system
from inkwell.ai.tools.file_cache import FileCache
from inkwell.ai.tools.registry import (
    TOOL_FACTORIES,
    ToolRegistrationError,
    ToolRegistry,
    build_registry,
)
from inkwell.ai.tools.tokens_words_counter import TokensWordsCounter
from inkwell.state import AppState
from tests.helpers import FakeCompletionClient, make_config, scripted_events


class _ClientFactory:
    """Hands out a fresh fake client per call and remembers them."""

    def __init__(self) -> None:
        self.clients: list[FakeCompletionClient] = []

    def __call__(self, config, settings) -> FakeCompletionClient:
        client = FakeCompletionClient(scripted_events(thinking=["t"], visible=["Report."]))
        self.clients.append(client)
        return client


def _state(project_dir: Path) -> AppState:
    state = AppState()
    state.select_project("novel", project_dir)
    return state


def test_initialize_registers_every_tool(project_dir: Path) -> None:
    system = initialize_tool_system(make_config(), state=_state(project_dir), client_factory=_ClientFactory())

    assert system.registry.get_all_tool_ids() == list(TOOL_FACTORIES)
    described = {entry["id"]: entry for entry in system.describe_tools()}
    assert described["consistency_checker"]["title"] == "Consistency Checker"
    assert described["line_editing"]["description"]


def test_tool_ids_limit_registration(project_dir: Path) -> None:
    system = ToolSystem(
        make_config(),
        state=_state(project_dir),
        tool_ids=["tokens_words_counter", "not_a_tool"],
        client_factory=_ClientFactory(),
    )

    assert system.registry.get_all_tool_ids() == ["tokens_words_counter"]


@pytest.mark.asyncio
async def test_execute_tool_by_id_runs_tool_and_fills_cache(project_dir: Path) -> None:
    output: list[str] = []
    factory = _ClientFactory()
    system = initialize_tool_system(
        make_config(),
        state=_state(project_dir),
        client_factory=factory,
        output_sink=output.append,
    )

    result = await system.execute_tool_by_id(
        "consistency_checker",
        {"manuscript_file": "manuscript.txt", "world_file": "world.txt", "unused": "ignored"},
    )

    assert result.success is True
    assert result.output_files[0].name.startswith("consistency_world_")
    assert system.file_cache.get_files("consistency_checker") == list(result.output_files)
    assert factory.clients[0].stream_calls == 1
    assert "Counting tokens in prompt...\n" in output


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_and_raised(project_dir: Path) -> None:
    output: list[str] = []
    system = initialize_tool_system(
        make_config(),
        state=_state(project_dir),
        client_factory=_ClientFactory(),
        output_sink=output.append,
    )

    with pytest.raises(UnknownToolError) as excinfo:
        await system.execute_tool_by_id("nope", {})

    assert excinfo.value.error_code == ErrorCode.UNKNOWN_TOOL
    assert output == ["\nError: Tool not found: nope\n"]


@pytest.mark.asyncio
async def test_reconfigure_swaps_client_and_tools(project_dir: Path) -> None:
    factory = _ClientFactory()
    system = initialize_tool_system(make_config(), state=_state(project_dir), client_factory=factory)
    old_tool = system.registry.get_tool("line_editing")

    await system.reconfigure(make_config(model_name="other-model"))

    new_tool = system.registry.get_tool("line_editing")
    assert new_tool is not old_tool
    assert new_tool.client is factory.clients[1]
    assert new_tool.config.model_id == "other-model"
    assert system.client is factory.clients[1]
    assert factory.clients[0].closed is True


@pytest.mark.asyncio
async def test_aclose_closes_client(project_dir: Path) -> None:
    factory = _ClientFactory()
    system = initialize_tool_system(make_config(), state=_state(project_dir), client_factory=factory)

    await system.aclose()

    assert factory.clients[0].closed is True


def test_registry_basics(deps) -> None:
    client = FakeCompletionClient()
    counter = TokensWordsCounter(client, make_config(), deps)
    replacement = TokensWordsCounter(client, make_config(), deps)
    registry = ToolRegistry()

    registry.register_tool("tokens_words_counter", counter)
    registry.register_tool("tokens_words_counter", replacement)

    assert len(registry) == 1
    assert "tokens_words_counter" in registry
    assert registry.get_tool("tokens_words_counter") is replacement
    assert registry.get_tool("missing") is None
    assert list(registry) == ["tokens_words_counter"]


def test_build_registry_aggregates_factory_failures(deps) -> None:
    def broken(client, config, deps):
        raise RuntimeError("boom")

    with pytest.raises(ToolRegistrationError) as excinfo:
        build_registry(
            FakeCompletionClient(),
            make_config(),
            deps,
            factories={"counter": TokensWordsCounter, "broken": broken},
        )

    assert [failure.name for failure in excinfo.value.failures] == ["broken"]


def test_bind_client_swaps_client(deps) -> None:
    tool = TokensWordsCounter(FakeCompletionClient(), make_config(), deps)
    other = FakeCompletionClient()

    tool.bind_client(other)

    assert tool.client is other


def test_shared_file_cache_is_used(project_dir: Path) -> None:
    cache = FileCache()
    cache.add_file("line_editing", "/tmp/old.txt")

    system = ToolSystem(make_config(), state=_state(project_dir), file_cache=cache, client_factory=_ClientFactory())

    assert system.file_cache is cache
