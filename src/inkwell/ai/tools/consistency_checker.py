"""Consistency checks of a manuscript against its world document and outline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from ..errors import InputValidationError
from .base import BaseTool, ToolRunResult, option_flag, option_text
from .reports import ReportRequest

__all__ = ["CHECK_TYPES", "ConsistencyChecker"]

LOGGER = logging.getLogger(__name__)

CHECK_TYPES: tuple[str, ...] = ("world", "internal", "development", "unresolved")
ALL_CHECKS = "all"
DEFAULT_CHECK = "world"


class ConsistencyChecker(BaseTool):
    """Run one consistency check, or all four in order.

    Each check type is a separate exchange and writes its own report pair
    named ``consistency_<type>``. A failure in a later check leaves earlier
    reports on disk but the run as a whole raises.
    """

    tool_id = "consistency_checker"
    title = "Consistency Checker"
    description = "Check a manuscript against its world document and outline for contradictions."

    async def execute(self, options: Mapping[str, Any]) -> ToolRunResult:
        self.begin_run()
        check_types = self._check_types(option_text(options, "check_type", DEFAULT_CHECK))
        skip_thinking = option_flag(options, "skip_thinking")
        description = option_text(options, "check_description")
        save_dir = self.resolve_save_dir(options)

        manuscript_path = self.resolve_path(self.require_option(options, "manuscript_file"), save_dir)
        world_path = self.resolve_path(self.require_option(options, "world_file"), save_dir)
        outline_option = option_text(options, "outline_file")
        outline_path = self.resolve_path(outline_option, save_dir) if outline_option else None
        LOGGER.debug(
            "Using manuscript=%s world=%s outline=%s",
            manuscript_path,
            world_path,
            outline_path,
        )

        self.emit_output("Reading files...\n")
        manuscript = self.read_document(manuscript_path, "manuscript")
        outline = self.read_document(outline_path, "outline") if outline_path else ""
        world = self.read_document(world_path, "world")
        sections = {"manuscript": manuscript, "outline": outline, "world": world}

        written: list[Path] = []
        prompt_tokens: dict[str, int] = {}
        for check_type in check_types:
            self.emit_output(f"\nRunning {check_type.upper()} consistency check...\n")
            prompt = self._deps.prompt_library.render(self.tool_id, sections, prompt_type=check_type)
            run = await self.run_completion(prompt)
            prompt_tokens[check_type] = run.prompt_tokens
            paths = self.save_report(
                ReportRequest(
                    kind=f"consistency_{check_type}",
                    description=description or None,
                    content=run.content,
                    thinking=run.result.thinking_text,
                    save_dir=save_dir,
                    skip_thinking=skip_thinking,
                    heading=("CONSISTENCY CHECK TYPE", check_type),
                    detail_lines=(f"Check type: {check_type} consistency check",),
                    prompt_tokens=run.prompt_tokens,
                    response_tokens=run.response_tokens,
                )
            )
            written.extend(paths)

        return ToolRunResult(
            success=True,
            output_files=self.finish_run(written),
            stats={"check_types": list(check_types), "prompt_tokens": prompt_tokens},
        )

    def _check_types(self, requested: str) -> tuple[str, ...]:
        check_type = requested.lower()
        if check_type == ALL_CHECKS:
            return CHECK_TYPES
        if check_type not in CHECK_TYPES:
            raise InputValidationError(
                message=(
                    f"Unknown check type: {requested} "
                    f"(expected one of {', '.join(CHECK_TYPES + (ALL_CHECKS,))})"
                ),
                details={"check_type": requested},
            )
        return (check_type,)
