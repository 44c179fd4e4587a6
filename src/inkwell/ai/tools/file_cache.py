"""Per-tool record of the files produced by the latest run."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = ["FileCache"]

LOGGER = logging.getLogger(__name__)


class FileCache:
    """In-memory mapping from tool id to the paths its latest run produced.

    A run clears its own bucket before writing, so at most one generation of
    outputs is visible per tool id. Buckets never interact and nothing is
    persisted across process restarts. Concurrent runs of the same tool id
    race on their bucket; callers are expected to run one at a time per id.
    """

    def __init__(self) -> None:
        self._files: dict[str, list[Path]] = {}

    def clear(self, tool_id: str) -> None:
        if self._files.pop(tool_id, None) is not None:
            LOGGER.debug("Cleared file cache for %s", tool_id)

    def add_file(self, tool_id: str, path: Path | str) -> None:
        self._files.setdefault(tool_id, []).append(Path(path))

    def get_files(self, tool_id: str) -> list[Path]:
        return list(self._files.get(tool_id, ()))

    def tool_ids(self) -> list[str]:
        return [tool_id for tool_id, files in self._files.items() if files]

    def __contains__(self, tool_id: object) -> bool:
        return bool(self._files.get(tool_id)) if isinstance(tool_id, str) else False
