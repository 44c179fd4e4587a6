"""Process-wide application state shared with the tool pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

__all__ = ["AppState"]


@dataclass(slots=True)
class AppState:
    """Mutable session state owned by the process bootstrap.

    ``current_project_path`` is the default save directory for tools when the
    caller does not pass ``save_dir`` explicitly.
    """

    current_project: str | None = None
    current_project_path: Path | None = None

    def select_project(self, name: str | None, path: Path | str | None) -> None:
        self.current_project = name
        self.current_project_path = Path(path).expanduser() if path else None

    def clear_project(self) -> None:
        self.current_project = None
        self.current_project_path = None

    @classmethod
    def from_settings(
        cls,
        payload: Mapping[str, object] | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> "AppState":
        """Build state from the settings store's ``projects`` block.

        ``INKWELL_PROJECT_PATH`` overrides the stored project path.
        """

        environment = os.environ if env is None else env
        projects = dict(payload or {}).get("projects") or {}
        current = projects.get("current") if isinstance(projects, Mapping) else None
        paths = projects.get("paths") if isinstance(projects, Mapping) else None
        path = None
        if current and isinstance(paths, Mapping):
            path = paths.get(current)
        override = environment.get("INKWELL_PROJECT_PATH")
        state = cls()
        state.select_project(current if isinstance(current, str) else None, override or path)
        return state
