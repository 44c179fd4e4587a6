"""Tool registry and the factory table used to populate it.

The registry is a plain id → instance map owned by the tool system. It is
not synchronised; at most one run per tool id is expected at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Sequence

from ...services.settings import Configuration
from ..orchestration.streaming import StreamingClient
from .base import BaseTool, ToolDependencies
from .consistency_checker import ConsistencyChecker
from .template_tool import TEMPLATE_TOOLS, TemplateTool, TemplateToolDefinition
from .tokens_words_counter import TokensWordsCounter

__all__ = [
    "TOOL_FACTORIES",
    "ToolFactory",
    "ToolRegistrationError",
    "ToolRegistrationFailure",
    "ToolRegistry",
    "build_registry",
]

LOGGER = logging.getLogger(__name__)

ToolFactory = Callable[[StreamingClient, Configuration, ToolDependencies], BaseTool]


@dataclass(slots=True)
class ToolRegistrationFailure:
    """Represents a single tool construction error."""

    name: str
    error: Exception


class ToolRegistrationError(RuntimeError):
    """Aggregated exception raised when some tools fail to build."""

    def __init__(self, failures: Sequence[ToolRegistrationFailure]):
        names = ", ".join(f.name for f in failures) or "unknown"
        super().__init__(f"Failed to register tool(s): {names}")
        self.failures = tuple(failures)


class ToolRegistry:
    """Maps tool ids to tool instances, in registration order.

    Example:
        registry = ToolRegistry()
        registry.register_tool("tokens_words_counter", counter)
        tool = registry.get_tool("tokens_words_counter")
    """

    def __init__(self, tools: Mapping[str, BaseTool] | None = None) -> None:
        self._tools: dict[str, BaseTool] = dict(tools or {})

    def register_tool(self, tool_id: str, tool: BaseTool) -> None:
        """Register ``tool`` under ``tool_id``; an existing entry is replaced."""
        if tool_id in self._tools:
            LOGGER.debug("Replacing registered tool: %s", tool_id)
        self._tools[tool_id] = tool
        LOGGER.debug("Registered tool: %s (%s)", tool_id, type(tool).__name__)

    def get_tool(self, tool_id: str) -> BaseTool | None:
        return self._tools.get(tool_id)

    def get_all_tool_ids(self) -> list[str]:
        return list(self._tools)

    def replace_all(self, tools: Mapping[str, BaseTool]) -> None:
        """Swap the whole registry contents in one assignment."""
        self._tools = dict(tools)

    def items(self) -> list[tuple[str, BaseTool]]:
        return list(self._tools.items())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._tools

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tools))


def _template_factory(definition: TemplateToolDefinition) -> ToolFactory:
    def factory(client: StreamingClient, config: Configuration, deps: ToolDependencies) -> BaseTool:
        return TemplateTool(client, config, deps, definition)

    return factory


TOOL_FACTORIES: dict[str, ToolFactory] = {
    TokensWordsCounter.tool_id: TokensWordsCounter,
    ConsistencyChecker.tool_id: ConsistencyChecker,
    **{definition.tool_id: _template_factory(definition) for definition in TEMPLATE_TOOLS},
}


def build_registry(
    client: StreamingClient,
    config: Configuration,
    deps: ToolDependencies,
    *,
    tool_ids: Sequence[str] | None = None,
    factories: Mapping[str, ToolFactory] | None = None,
) -> dict[str, BaseTool]:
    """Instantiate tools for ``tool_ids`` (default: every known factory).

    Ids without a factory are skipped with a warning.

    Raises:
        ToolRegistrationError: if any factory raises.
    """

    table = TOOL_FACTORIES if factories is None else factories
    requested = list(table) if tool_ids is None else list(tool_ids)
    tools: dict[str, BaseTool] = {}
    failures: list[ToolRegistrationFailure] = []
    for tool_id in requested:
        factory = table.get(tool_id)
        if factory is None:
            LOGGER.warning("No implementation for tool %s; skipping", tool_id)
            continue
        try:
            tools[tool_id] = factory(client, config, deps)
        except Exception as exc:
            LOGGER.error("Failed to build tool %s: %s", tool_id, exc)
            failures.append(ToolRegistrationFailure(tool_id, exc))
    if failures:
        raise ToolRegistrationError(failures)
    LOGGER.debug("Built %d tool(s): %s", len(tools), ", ".join(tools))
    return tools
