from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from inkwell import app
from tests.helpers import FakeCompletionClient, scripted_events


@pytest.fixture
def settings_path(tmp_path: Path, project_dir: Path) -> Path:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"projects": {"current": "novel", "paths": {"novel": str(project_dir)}}}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def client_factory():
    clients: list[FakeCompletionClient] = []

    def factory(config, settings):
        client = FakeCompletionClient(scripted_events(thinking=["hmm"], visible=["All consistent."]))
        clients.append(client)
        return client

    factory.clients = clients
    return factory


def _main(*argv: str, client_factory=None) -> tuple[int, str]:
    out = io.StringIO()
    kwargs = {"stdout": out}
    if client_factory is not None:
        kwargs["client_factory"] = client_factory
    code = app.main(list(argv), **kwargs)
    return code, out.getvalue()


def test_list_prints_registered_tools(settings_path: Path, client_factory) -> None:
    code, output = _main("--settings-path", str(settings_path), "list", client_factory=client_factory)

    assert code == app.EXIT_OK
    for tool_id in ("tokens_words_counter", "consistency_checker", "line_editing"):
        assert tool_id in output
    assert client_factory.clients[0].closed is True


def test_run_writes_reports_into_current_project(settings_path: Path, project_dir: Path, client_factory) -> None:
    code, output = _main(
        "--settings-path",
        str(settings_path),
        "run",
        "consistency_checker",
        "--option",
        "manuscript_file=manuscript.txt",
        "--option",
        "world_file=world.txt",
        "--skip-thinking",
        "--json",
        client_factory=client_factory,
    )

    assert code == app.EXIT_OK
    assert "Report saved to: " in output
    assert '"success": true' in output
    reports = list(project_dir.glob("consistency_world_*.txt"))
    assert len(reports) == 1
    assert reports[0].read_text(encoding="utf-8") == "All consistent."


def test_run_unknown_tool_fails(settings_path: Path, client_factory) -> None:
    code, output = _main("--settings-path", str(settings_path), "run", "nope", client_factory=client_factory)

    assert code == app.EXIT_TOOL_FAILED
    assert "Error: Tool not found: nope" in output


def test_run_reports_missing_option(settings_path: Path, client_factory) -> None:
    code, output = _main(
        "--settings-path",
        str(settings_path),
        "run",
        "consistency_checker",
        "--option",
        "manuscript_file=manuscript.txt",
        client_factory=client_factory,
    )

    assert code == app.EXIT_TOOL_FAILED
    assert "world_file" in output
    assert client_factory.clients[0].stream_calls == 0


def test_malformed_option_is_a_usage_error(settings_path: Path, client_factory) -> None:
    code, _ = _main(
        "--settings-path",
        str(settings_path),
        "run",
        "line_editing",
        "--option",
        "no-equals-sign",
        client_factory=client_factory,
    )

    assert code == app.EXIT_USAGE
    assert client_factory.clients == []


def test_invalid_settings_file_is_a_usage_error(tmp_path: Path, client_factory) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"context_window": -1}), encoding="utf-8")

    code, _ = _main("--settings-path", str(path), "list", client_factory=client_factory)

    assert code == app.EXIT_USAGE


def test_load_settings_payload_overlays_defaults(settings_path: Path) -> None:
    payload = app.load_settings_payload(settings_path)

    assert payload["context_window"] == 200_000
    assert payload["projects"]["current"] == "novel"


def test_load_settings_payload_without_file(tmp_path: Path) -> None:
    payload = app.load_settings_payload(tmp_path / "missing.json")

    assert "projects" not in payload
    assert payload["model_name"] == "claude-3-7-sonnet-20250219"


def test_count_tokens_falls_back_to_byte_estimate(
    settings_path: Path, project_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    class OfflineCounter:
        def __init__(self, model_name: str) -> None:
            self.model_name = model_name

        def count(self, text: str) -> int:
            raise OSError("no network")

    monkeypatch.setattr(app, "TiktokenCounter", OfflineCounter)

    code, output = _main(
        "--settings-path", str(settings_path), "count-tokens", str(project_dir / "manuscript.txt")
    )

    assert code == app.EXIT_OK
    assert "words: 6\n" in output
    assert "tokens: 9\n" in output
    assert "Token stats:" in output


def test_count_tokens_missing_file(settings_path: Path, tmp_path: Path) -> None:
    code, output = _main("--settings-path", str(settings_path), "count-tokens", str(tmp_path / "absent.txt"))

    assert code == app.EXIT_TOOL_FAILED
    assert output == ""
