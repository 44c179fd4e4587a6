"""Prompt templates for the template-driven tools.

Templates are plain text files stored as ``<root>/<tool_id>/<prompt_type>.txt``.
Their wording is data; the pipeline only fills the section placeholders
(``<manuscript></manuscript>``, ``<outline></outline>``, ``<world></world>``,
``<no-markdown></no-markdown>``) before sending the prompt.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Mapping

from ...utils.file_io import read_text
from ..errors import MissingPromptError

__all__ = [
    "DEFAULT_PROMPT_ROOT",
    "DEFAULT_PROMPT_TYPE",
    "NO_MARKDOWN_NOTICE",
    "PromptLibrary",
    "fill_placeholders",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_PROMPT_ROOT = Path(__file__).resolve().parents[2] / "prompts"
DEFAULT_PROMPT_TYPE = "main"
NO_MARKDOWN_NOTICE = (
    "IMPORTANT: - NO Markdown formatting of ANY kind. Use plain text only, "
    "with ordinary paragraphs and simple numbered or dashed lists."
)
_PLACEHOLDER = re.compile(r"<(?P<name>[a-z][a-z0-9-]*)></(?P=name)>")


def fill_placeholders(template: str, values: Mapping[str, str]) -> str:
    """Replace every ``<name></name>`` pair whose ``name`` is in ``values``.

    Placeholders without a value are left in place so a missing section is
    visible in the prompt log rather than silently dropped.
    """

    def _substitute(match: re.Match[str]) -> str:
        name = match.group("name")
        if name in values:
            return values[name]
        return match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


class PromptLibrary:
    """Loads and caches prompt templates from a directory tree."""

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root).expanduser() if root is not None else DEFAULT_PROMPT_ROOT
        self._cache: dict[tuple[str, str], str] = {}

    @property
    def root(self) -> Path:
        return self._root

    def template_path(self, tool_id: str, prompt_type: str = DEFAULT_PROMPT_TYPE) -> Path:
        return self._root / tool_id / f"{prompt_type}.txt"

    def has_template(self, tool_id: str, prompt_type: str = DEFAULT_PROMPT_TYPE) -> bool:
        return self.template_path(tool_id, prompt_type).is_file()

    def get(self, tool_id: str, prompt_type: str = DEFAULT_PROMPT_TYPE) -> str:
        """Return the raw template text.

        Raises:
            MissingPromptError: if no template exists for the pair.
        """

        key = (tool_id, prompt_type)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        path = self.template_path(tool_id, prompt_type)
        if not path.is_file():
            raise MissingPromptError.for_template(tool_id, prompt_type)
        text = read_text(path)
        self._cache[key] = text
        LOGGER.debug("Loaded prompt template %s (%d chars)", path, len(text))
        return text

    def render(
        self,
        tool_id: str,
        sections: Mapping[str, str],
        *,
        prompt_type: str = DEFAULT_PROMPT_TYPE,
    ) -> str:
        values = {"no-markdown": NO_MARKDOWN_NOTICE}
        values.update(sections)
        return fill_placeholders(self.get(tool_id, prompt_type), values)

    def prompt_types(self, tool_id: str) -> list[str]:
        folder = self._root / tool_id
        if not folder.is_dir():
            return []
        return sorted(path.stem for path in folder.glob("*.txt"))

    def tool_ids(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self._root.iterdir()
            if entry.is_dir() and any(entry.glob("*.txt"))
        )

    def clear_cache(self) -> None:
        self._cache.clear()
