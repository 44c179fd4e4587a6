"""Command-line front door for the Inkwell tool pipeline."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO

from .ai.client import ApproxByteCounter, CompletionClient, TiktokenCounter, load_client_settings
from .ai.errors import ConfigurationError, InkwellError
from .ai.orchestration.budget import calculate_token_budget
from .ai.tool_system import ClientFactory, initialize_tool_system
from .services.settings import Configuration, default_settings, load_configuration
from .state import AppState
from .utils import logging as logging_utils
from .utils.file_io import count_words, read_document

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_DEFAULT_SETTINGS_PATH = Path.home() / ".inkwell" / "settings.json"

EXIT_OK = 0
EXIT_TOOL_FAILED = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """File logging always; console logging only when debugging."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))


def load_settings_payload(path: Path | None = None) -> Dict[str, Any]:
    """Defaults overlaid with the JSON settings file, when one exists."""

    payload: Dict[str, Any] = default_settings()
    target = path or _DEFAULT_SETTINGS_PATH
    if not target.is_file():
        _LOGGER.debug("No settings file at %s; using defaults", target)
        return payload
    with target.open("r", encoding="utf-8") as handle:
        stored = json.load(handle)
    if not isinstance(stored, Mapping):
        raise ConfigurationError(message=f"Settings file {target} must hold a JSON object.")
    payload.update(stored)
    return payload


def main(
    argv: Sequence[str] | None = None,
    *,
    stdout: TextIO | None = None,
    client_factory: ClientFactory = CompletionClient,
) -> int:
    """Entry point invoked by the `inkwell` console script."""

    out = stdout or sys.stdout
    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("INKWELL_DEBUG")
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("INKWELL_SETTINGS_PATH")
    try:
        payload = load_settings_payload(Path(settings_path).expanduser() if settings_path else None)
        config = load_configuration(payload)
    except (ConfigurationError, json.JSONDecodeError) as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.command == "count-tokens":
        return _count_tokens(Path(args.file), config, out)

    try:
        options = _coerce_options(getattr(args, "options", None) or [])
    except ValueError as exc:
        print(f"Invalid --option: {exc}", file=sys.stderr)
        return EXIT_USAGE
    if getattr(args, "save_dir", None):
        options["save_dir"] = args.save_dir
    if getattr(args, "skip_thinking", False):
        options["skip_thinking"] = True

    state = AppState.from_settings(payload)
    return asyncio.run(_run_command(args, config, state, options, out, client_factory))


async def _run_command(
    args: argparse.Namespace,
    config: Configuration,
    state: AppState,
    options: Dict[str, Any],
    out: TextIO,
    client_factory: ClientFactory,
) -> int:
    system = initialize_tool_system(
        config,
        load_client_settings(),
        state=state,
        client_factory=client_factory,
        output_sink=lambda text: _write(out, text),
    )
    try:
        if args.command == "list":
            for entry in system.describe_tools():
                _write(out, f"{entry['id']:<24} {entry['description']}\n")
            return EXIT_OK

        try:
            result = await system.execute_tool_by_id(args.tool_id, options)
        except InkwellError as exc:
            _LOGGER.debug("Tool %s failed: %s", args.tool_id, exc.to_dict())
            return EXIT_TOOL_FAILED
        if args.json:
            _write(out, json.dumps(result.to_dict(), indent=2) + "\n")
        return EXIT_OK
    finally:
        await system.aclose()


def _count_tokens(path: Path, config: Configuration, out: TextIO) -> int:
    try:
        text = read_document(path)
    except InkwellError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_TOOL_FAILED
    try:
        tokens = TiktokenCounter(config.model_id).count(text)
    except OSError as exc:
        _LOGGER.warning("Tokenizer unavailable (%s); using byte estimate", exc)
        tokens = ApproxByteCounter(model_name=config.model_id).count(text)
    words = count_words(text)
    budget = calculate_token_budget(tokens, config)
    _write(out, f"file: {path}\n")
    _write(out, f"words: {words}\n")
    _write(out, f"tokens: {tokens}\n")
    _write(out, f"words per token: {words / tokens if tokens else 0.0:.2f}\n")
    _write(out, "\n".join(budget.describe()) + "\n")
    if budget.is_prompt_too_large:
        _write(out, f"Too large for a {budget.configured_thinking_budget} thinking budget.\n")
    return EXIT_OK


def _write(out: TextIO, text: str) -> None:
    out.write(text)
    out.flush()


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_options(items: Sequence[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Option '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Option is missing a name.")
        options[key] = raw_value.strip()
    return options


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Run manuscript analysis tools against an LLM completion service.",
    )
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level, also to the console.")
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.inkwell/settings.json path.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List registered tools.")

    run = commands.add_parser("run", help="Run one tool.")
    run.add_argument("tool_id", help="Registered tool id, see `inkwell list`.")
    run.add_argument(
        "--option",
        dest="options",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Tool option, e.g. manuscript_file=manuscript.txt (repeatable).",
    )
    run.add_argument("--save-dir", metavar="DIR", help="Directory for reports (default: current project).")
    run.add_argument("--skip-thinking", action="store_true", help="Do not write the thinking file.")
    run.add_argument("--json", action="store_true", help="Print the run result as JSON.")

    count = commands.add_parser("count-tokens", help="Count words and tokens in a file.")
    count.add_argument("file", help="Text file to count.")
    return parser.parse_args(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
