"""Word and token counter for a single document.

Counts locally and through the completion client's token counter; no
completion request is made.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from ...utils.file_io import count_words
from .base import BaseTool, ToolRunResult, option_text
from .reports import ReportRequest, format_human_datetime

__all__ = ["TokensWordsCounter"]

LOGGER = logging.getLogger(__name__)


class TokensWordsCounter(BaseTool):
    """Report word count, token count and the remaining context window."""

    tool_id = "tokens_words_counter"
    title = "Tokens & Words Counter"
    description = "Count words and tokens in a document and show how much of the context window is left."

    async def execute(self, options: Mapping[str, Any]) -> ToolRunResult:
        self.begin_run()
        save_dir = self._counter_save_dir(options)
        input_file = self.resolve_path(self.require_option(options, "input_file"), save_dir)

        text = self.read_document(input_file, "input")
        word_count = count_words(text)
        LOGGER.debug("Read %s: %d characters, %d words", input_file, len(text), word_count)

        self.emit_output("Counting tokens (this may take a few seconds)...\n")
        token_count = await self.client.count_tokens(text)

        config = self.config
        available_tokens = config.context_window_tokens - token_count
        words_per_token = word_count / token_count if token_count > 0 else 0.0
        moment = self._deps.clock()

        content = "\n".join(
            [
                "Token and Word Count Report",
                "=========================",
                "",
                f"Analysis of file: {input_file}",
                f"Generated on: {format_human_datetime(moment)}",
                "",
                f"Word count: {word_count}",
                f"Token count: {token_count}",
                f"Words per token ratio: {words_per_token:.2f}",
                "",
                f"Context window: {config.context_window_tokens} tokens",
                f"Available tokens: {available_tokens} tokens",
                f"Thinking budget: {config.thinking_budget_tokens} tokens",
                f"Desired output tokens: {config.desired_output_tokens} tokens",
            ]
        )
        self.emit_output(f"\n{content}\n")

        paths = self.save_report(
            ReportRequest(
                kind="count",
                variant=input_file.stem,
                content=content,
                save_dir=save_dir,
                prompt_tokens=token_count,
            ),
            moment=moment,
        )
        return ToolRunResult(
            success=True,
            output_files=self.finish_run(paths),
            stats={
                "word_count": word_count,
                "token_count": token_count,
                "words_per_token": round(words_per_token, 2),
                "available_tokens": available_tokens,
            },
        )

    def _counter_save_dir(self, options: Mapping[str, Any]) -> Path:
        # Counting needs no project; fall back to the working directory.
        explicit = option_text(options, "save_dir")
        if explicit:
            return Path(explicit).expanduser()
        return self._deps.state.current_project_path or Path.cwd()
