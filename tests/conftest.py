"""Shared pytest fixtures."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Callable

import pytest

from inkwell.ai.tools.base import ToolDependencies
from inkwell.ai.tools.file_cache import FileCache
from inkwell.ai.tools.prompt_library import PromptLibrary
from inkwell.services.settings import Configuration
from inkwell.state import AppState
from tests.helpers import FIXED_MOMENT, FakeCompletionClient, make_config, scripted_events


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("INKWELL_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("INKWELL_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def config() -> Configuration:
    return make_config()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    (project / "manuscript.txt").write_text("Chapter one. Mara opens the door.\n", encoding="utf-8")
    (project / "world.txt").write_text("Mara is left-handed and fears the sea.\n", encoding="utf-8")
    (project / "outline.txt").write_text("1. Mara leaves home.\n", encoding="utf-8")
    return project


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_MOMENT


@pytest.fixture
def deps(project_dir: Path, clock: Callable[[], datetime]) -> ToolDependencies:
    state = AppState()
    state.select_project("novel", project_dir)
    return ToolDependencies(
        file_cache=FileCache(),
        state=state,
        prompt_library=PromptLibrary(),
        clock=clock,
    )


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient(
        scripted_events(
            thinking=["Checking the ", "world notes."],
            visible=["Mara uses her ", "**right** hand in chapter one."],
        )
    )
