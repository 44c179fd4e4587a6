"""Base classes for manuscript tools.

This module provides the abstract tool contract plus the standard execution
skeleton every LLM-backed tool shares: resolve inputs, count the prompt,
compute the token budget, stream the completion, strip residual markup,
persist the report and register the written files with the cache.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, ClassVar, Mapping, TypeVar

from ...services.settings import Configuration
from ...state import AppState
from ...utils import file_io
from ...utils.logging import tool_context
from ..errors import MissingOptionError, SaveDirectoryError
from ..orchestration.budget import TokenBudget, calculate_token_budget
from ..orchestration.streaming import StreamingClient, StreamingOrchestrator, StreamingResult
from .file_cache import FileCache
from .markup import strip_markup
from .prompt_library import PromptLibrary
from .reports import ReportAssembler, ReportRequest, describe_paths, utc_now

__all__ = [
    "BaseTool",
    "CompletionRun",
    "OutputSink",
    "ToolDependencies",
    "ToolRunResult",
    "option_flag",
    "option_text",
]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
OutputSink = Callable[[str], Any]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True, frozen=True)
class ToolRunResult:
    """Outcome of one tool run.

    Attributes:
        success: Whether the run produced its reports.
        output_files: Absolute paths written by the run, primary report first.
        stats: Tool-specific counters (token counts, check types, ...).
    """

    success: bool
    output_files: tuple[Path, ...] = ()
    stats: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output_files": [str(path) for path in self.output_files],
            "stats": dict(self.stats),
        }


@dataclass(slots=True)
class ToolDependencies:
    """Shared services handed to every tool by the bootstrap."""

    file_cache: FileCache
    state: AppState
    prompt_library: PromptLibrary = field(default_factory=PromptLibrary)
    clock: Callable[[], datetime] = utc_now


@dataclass(slots=True, frozen=True)
class CompletionRun:
    """Budget, raw stream result and cleaned report text of one exchange."""

    budget: TokenBudget
    result: StreamingResult
    content: str

    @property
    def prompt_tokens(self) -> int:
        return self.budget.prompt_tokens

    @property
    def response_tokens(self) -> int:
        return self.result.response_token_count


def option_text(options: Mapping[str, Any], name: str, default: str = "") -> str:
    value = options.get(name)
    if value is None:
        return default
    return str(value).strip()


def option_flag(options: Mapping[str, Any], name: str) -> bool:
    value = options.get(name)
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


class BaseTool(ABC):
    """Abstract base class for all tools.

    Subclasses implement :meth:`execute`; callers go through :meth:`run`,
    which adds timing, logging and error reporting through the output sink.

    Example:
        class WordCountTool(BaseTool):
            tool_id = "word_count"

            async def execute(self, options):
                self.begin_run()
                ...
                return ToolRunResult(success=True, output_files=tuple(paths))
    """

    tool_id: ClassVar[str] = ""
    title: ClassVar[str] = ""
    description: ClassVar[str] = ""

    def __init__(
        self,
        client: StreamingClient,
        config: Configuration,
        deps: ToolDependencies,
        *,
        tool_id: str | None = None,
    ) -> None:
        if tool_id:
            self.tool_id = tool_id
        if not self.tool_id:
            raise ValueError(f"{type(self).__name__} needs a tool id")
        self._client = client
        self._config = config
        self._deps = deps
        self._reports = ReportAssembler(config, clock=deps.clock)
        self._output_sink: OutputSink | None = None

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def client(self) -> StreamingClient:
        return self._client

    def bind_client(self, client: StreamingClient) -> None:
        """Swap the completion client used by later runs."""
        self._client = client

    def set_output_sink(self, sink: OutputSink | None) -> None:
        self._output_sink = sink

    def emit_output(self, text: str) -> None:
        """Send progress text to the sink, or to the log when none is set."""
        if self._output_sink is None:
            LOGGER.info("[%s] %s", self.tool_id, text.strip())
            return
        self._output_sink(text)

    async def run(self, options: Mapping[str, Any] | None = None) -> ToolRunResult:
        """Execute the tool and report failures through the output sink."""

        params = dict(options) if options else {}
        LOGGER.debug("Executing %s with options: %s", self.tool_id, sorted(params))
        start_time = time.perf_counter()
        with tool_context(self.tool_id):
            result = await self.run_reported(self.execute(params))
        LOGGER.info(
            "Tool %s finished in %.2fs (%d file(s))",
            self.tool_id,
            time.perf_counter() - start_time,
            len(result.output_files),
        )
        return result

    @abstractmethod
    async def execute(self, options: Mapping[str, Any]) -> ToolRunResult:
        """Perform the tool's work.

        Raises:
            InkwellError: for every expected failure.
        """
        ...

    # ------------------------------------------------------------------
    # Execution skeleton
    # ------------------------------------------------------------------

    async def run_reported(self, operation: Awaitable[T]) -> T:
        """Await ``operation``; emit any failure before re-raising it."""

        try:
            return await operation
        except Exception as exc:
            LOGGER.error("Error in %s: %s", self.tool_id, exc)
            self.emit_output(f"\nError: {exc}\n")
            raise

    def begin_run(self) -> None:
        self._deps.file_cache.clear(self.tool_id)

    def resolve_save_dir(self, options: Mapping[str, Any]) -> Path:
        """Explicit ``save_dir`` option, else the current project directory.

        Raises:
            SaveDirectoryError: if neither is available.
        """

        explicit = option_text(options, "save_dir")
        if explicit:
            return Path(explicit).expanduser()
        project_path = self._deps.state.current_project_path
        if project_path is None:
            raise SaveDirectoryError()
        return Path(project_path)

    def resolve_path(self, value: str | Path, save_dir: Path) -> Path:
        return file_io.resolve_path(value, save_dir)

    def require_option(self, options: Mapping[str, Any], name: str) -> str:
        value = option_text(options, name)
        if not value:
            raise MissingOptionError.for_option(name, tool_id=self.tool_id)
        return value

    def read_document(self, path: Path, label: str) -> str:
        self.emit_output(f"Reading {label} file: {path}\n")
        return file_io.read_document(path)

    async def run_completion(self, prompt: str) -> CompletionRun:
        """Count, budget, stream and clean one prompt.

        Raises:
            RemoteCountError: when the prompt cannot be counted.
            BudgetOverflowError: before any request when the prompt is too large.
            StreamInterruptedError: when the exchange fails.
        """

        self.emit_output("Counting tokens in prompt...\n")
        prompt_tokens = await self._client.count_tokens(prompt)
        budget = calculate_token_budget(prompt_tokens, self._config)
        self.emit_output("\n" + "\n".join(budget.describe()) + "\n")
        if budget.is_prompt_too_large:
            self.emit_output(
                f"Error: prompt is too large to have a "
                f"{budget.configured_thinking_budget} thinking budget!\n"
            )
            self.emit_output("Run aborted!\n")
            budget.ensure_fits()

        self.emit_output("Sending request to the completion service (streaming)...\n")
        orchestrator = StreamingOrchestrator(self._client)
        result = await orchestrator.run(prompt, budget)

        self.emit_output(f"\nCompleted in {result.elapsed_display}.\n")
        self.emit_output(f"Report has approximately {result.visible_word_count} words.\n")
        self.emit_output(f"Response token count: {result.response_token_count}\n")
        return CompletionRun(budget=budget, result=result, content=strip_markup(result.visible_text))

    def save_report(self, request: ReportRequest, *, moment: datetime | None = None) -> list[Path]:
        paths = self._reports.write(request, moment=moment)
        for line in describe_paths(paths):
            self.emit_output(f"{line}\n")
        return paths

    def finish_run(self, paths: list[Path]) -> tuple[Path, ...]:
        """Register ``paths`` as this run's output and return them."""

        for path in paths:
            self._deps.file_cache.add_file(self.tool_id, path)
        return tuple(paths)
