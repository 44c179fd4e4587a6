"""Narrative tools driven entirely by prompt templates.

A template tool is a :class:`TemplateToolDefinition` plus a directory of
prompt files. The tool reads the documents the definition asks for, fills
the template placeholders and runs the standard completion skeleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .base import BaseTool, ToolDependencies, ToolRunResult, option_flag, option_text
from .prompt_library import DEFAULT_PROMPT_TYPE
from .reports import ReportRequest

__all__ = [
    "DEFAULT_ANALYSIS_LEVEL",
    "TEMPLATE_TOOLS",
    "TemplateTool",
    "TemplateToolDefinition",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_ANALYSIS_LEVEL = "standard"

_DOCUMENT_OPTIONS: tuple[tuple[str, str], ...] = (
    ("manuscript", "manuscript_file"),
    ("outline", "outline_file"),
    ("world", "world_file"),
)


@dataclass(slots=True, frozen=True)
class TemplateToolDefinition:
    """Static description of one template-driven tool.

    Attributes:
        tool_id: Registry id and prompt sub-directory name.
        title: Display name.
        description: One-line summary for listings.
        requires_manuscript: Fail without ``manuscript_file``.
        requires_outline: Fail without ``outline_file``.
        requires_world: Fail without ``world_file``.
        analysis_level: Default for the ``<analysis-level>`` placeholder.
    """

    tool_id: str
    title: str
    description: str = ""
    requires_manuscript: bool = True
    requires_outline: bool = False
    requires_world: bool = False
    analysis_level: str = DEFAULT_ANALYSIS_LEVEL

    def requires(self, section: str) -> bool:
        return {
            "manuscript": self.requires_manuscript,
            "outline": self.requires_outline,
            "world": self.requires_world,
        }[section]


TEMPLATE_TOOLS: tuple[TemplateToolDefinition, ...] = (
    TemplateToolDefinition(
        tool_id="developmental_editing",
        title="Developmental Editing",
        description="Structural assessment of plot, character arcs and pacing.",
    ),
    TemplateToolDefinition(
        tool_id="line_editing",
        title="Line Editing",
        description="Sentence-level revisions quoted against the original text.",
    ),
    TemplateToolDefinition(
        tool_id="plot_thread_tracker",
        title="Plot Thread Tracker",
        description="Where each plot thread starts, advances, crosses and resolves.",
    ),
    TemplateToolDefinition(
        tool_id="character_analyzer",
        title="Character Analyzer",
        description="Characters across manuscript, outline and world, with discrepancies.",
    ),
)


class TemplateTool(BaseTool):
    """Generic tool whose behaviour is defined by its prompt templates."""

    def __init__(
        self,
        client: Any,
        config: Any,
        deps: ToolDependencies,
        definition: TemplateToolDefinition,
    ) -> None:
        super().__init__(client, config, deps, tool_id=definition.tool_id)
        self.definition = definition
        self.title = definition.title
        self.description = definition.description

    async def execute(self, options: Mapping[str, Any]) -> ToolRunResult:
        self.begin_run()
        definition = self.definition
        save_dir = self.resolve_save_dir(options)
        prompt_type = option_text(options, "prompt_type", DEFAULT_PROMPT_TYPE) or DEFAULT_PROMPT_TYPE
        analysis_level = (
            option_text(options, "analysis_level", definition.analysis_level)
            or definition.analysis_level
        )
        description = option_text(options, "analysis_description")
        skip_thinking = option_flag(options, "skip_thinking")

        paths: dict[str, Path] = {}
        for section, option_name in _DOCUMENT_OPTIONS:
            if definition.requires(section):
                value = self.require_option(options, option_name)
            else:
                value = option_text(options, option_name)
            if value:
                paths[section] = self.resolve_path(value, save_dir)

        # Load the template before reading documents so a bad prompt type fails fast.
        self._deps.prompt_library.get(self.tool_id, prompt_type)

        self.emit_output("Reading files...\n")
        sections = {section: "" for section, _ in _DOCUMENT_OPTIONS}
        for section, path in paths.items():
            sections[section] = self.read_document(path, section)
        sections["analysis-level"] = analysis_level

        prompt = self._deps.prompt_library.render(self.tool_id, sections, prompt_type=prompt_type)
        run = await self.run_completion(prompt)

        variant_parts = []
        if prompt_type != DEFAULT_PROMPT_TYPE:
            variant_parts.append(prompt_type)
        if analysis_level != DEFAULT_ANALYSIS_LEVEL:
            variant_parts.append(analysis_level)

        written = self.save_report(
            ReportRequest(
                kind=self.tool_id,
                variant="_".join(variant_parts) or None,
                description=description or None,
                content=run.content,
                thinking=run.result.thinking_text,
                save_dir=save_dir,
                skip_thinking=skip_thinking,
                heading=(f"{self.tool_id.upper()} ANALYSIS", ""),
                detail_lines=(
                    f"Tool: {self.tool_id}",
                    f"Prompt type: {prompt_type}",
                    f"Analysis level: {analysis_level}",
                ),
                prompt_tokens=run.prompt_tokens,
                response_tokens=run.response_tokens,
            )
        )
        return ToolRunResult(
            success=True,
            output_files=self.finish_run(written),
            stats={
                "prompt_type": prompt_type,
                "analysis_level": analysis_level,
                "prompt_tokens": run.prompt_tokens,
                "response_tokens": run.response_tokens,
                "word_count": run.result.visible_word_count,
                "elapsed_seconds": round(run.result.elapsed_seconds, 3),
            },
        )
