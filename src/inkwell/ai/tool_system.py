"""Bootstrap for the tool pipeline and the ``execute_tool_by_id`` entry point."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Mapping, Sequence

from ..services.settings import Configuration
from ..state import AppState
from .client import ClientSettings, CompletionClient
from .errors import UnknownToolError
from .orchestration.streaming import StreamingClient
from .tools.base import OutputSink, ToolDependencies, ToolRunResult
from .tools.file_cache import FileCache
from .tools.prompt_library import PromptLibrary
from .tools.registry import ToolRegistry, build_registry

__all__ = ["ClientFactory", "ToolSystem", "initialize_tool_system"]

LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[[Configuration, ClientSettings], StreamingClient]


class ToolSystem:
    """Owns the completion client, the tool registry, the file cache and state.

    Runs for different tool ids may overlap; two concurrent runs of the same
    tool id share one cache bucket and are not supported.
    """

    def __init__(
        self,
        config: Configuration,
        client_settings: ClientSettings | None = None,
        *,
        state: AppState | None = None,
        prompt_library: PromptLibrary | None = None,
        file_cache: FileCache | None = None,
        tool_ids: Sequence[str] | None = None,
        client_factory: ClientFactory = CompletionClient,
        output_sink: OutputSink | None = None,
    ) -> None:
        self._config = config
        self._client_settings = client_settings or ClientSettings()
        self._client_factory = client_factory
        self._tool_ids = list(tool_ids) if tool_ids is not None else None
        self._output_sink = output_sink
        self._deps = ToolDependencies(
            file_cache=file_cache or FileCache(),
            state=state or AppState(),
            prompt_library=prompt_library or PromptLibrary(),
        )
        self._client = client_factory(config, self._client_settings)
        self._registry = ToolRegistry(self._build_tools())

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def client(self) -> StreamingClient:
        return self._client

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def file_cache(self) -> FileCache:
        return self._deps.file_cache

    @property
    def state(self) -> AppState:
        return self._deps.state

    def set_output_sink(self, sink: OutputSink | None) -> None:
        self._output_sink = sink
        for _, tool in self._registry.items():
            tool.set_output_sink(sink)

    def describe_tools(self) -> list[dict[str, str]]:
        return [
            {"id": tool_id, "title": tool.title or tool_id, "description": tool.description}
            for tool_id, tool in self._registry.items()
        ]

    async def execute_tool_by_id(
        self,
        tool_id: str,
        options: Mapping[str, Any] | None = None,
    ) -> ToolRunResult:
        """Run the registered tool ``tool_id`` with ``options``.

        Unrecognised option keys are ignored by the tools.

        Raises:
            UnknownToolError: if ``tool_id`` is not registered.
            InkwellError: whatever the tool raises, after it was reported.
        """

        tool = self._registry.get_tool(tool_id)
        if tool is None:
            LOGGER.error("Tool not found: %s", tool_id)
            error = UnknownToolError.for_id(tool_id)
            if self._output_sink is not None:
                self._output_sink(f"\nError: {error}\n")
            raise error
        LOGGER.info("Starting execution of tool: %s", tool_id)
        return await tool.run(options)

    async def reconfigure(self, config: Configuration) -> None:
        """Rebuild the client and replace every registered tool."""

        previous = self._client
        self._config = config
        self._client = self._client_factory(config, self._client_settings)
        self._registry.replace_all(self._build_tools())
        LOGGER.info("Tool system reconfigured (%d tools, model=%s)", len(self._registry), config.model_id)
        await _close_client(previous)

    async def aclose(self) -> None:
        await _close_client(self._client)

    def _build_tools(self) -> dict[str, Any]:
        tools = build_registry(self._client, self._config, self._deps, tool_ids=self._tool_ids)
        for tool in tools.values():
            tool.set_output_sink(self._output_sink)
        return tools


def initialize_tool_system(
    config: Configuration,
    client_settings: ClientSettings | None = None,
    *,
    state: AppState | None = None,
    prompt_library: PromptLibrary | None = None,
    tool_ids: Sequence[str] | None = None,
    client_factory: ClientFactory = CompletionClient,
    output_sink: OutputSink | None = None,
) -> ToolSystem:
    """Create the client and register the requested tools (default: all)."""

    LOGGER.info("Initializing tool system (model=%s)", config.model_id)
    system = ToolSystem(
        config,
        client_settings,
        state=state,
        prompt_library=prompt_library,
        tool_ids=tool_ids,
        client_factory=client_factory,
        output_sink=output_sink,
    )
    LOGGER.info("Registered %d tool(s): %s", len(system.registry), ", ".join(system.registry))
    return system


async def _close_client(client: Any) -> None:
    close = getattr(client, "aclose", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result
