"""Write tool reports and their companion thinking files.

File names follow ``<kind>[_<variant>][_<description>]_<timestamp>.txt`` with
the thinking trace in ``..._thinking.txt`` next to it. The timestamp has
second resolution; when a name is already taken within the same second a
``-2``, ``-3``, ... suffix is appended to the timestamp rather than
overwriting the earlier report.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Mapping, Sequence

from ...services.settings import Configuration
from ...utils.file_io import write_text

__all__ = [
    "ReportRequest",
    "ReportAssembler",
    "format_timestamp",
    "format_human_datetime",
    "build_base_name",
    "describe_paths",
    "utc_now",
]

LOGGER = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_COLLISION_SUFFIX = 1_000


@dataclass(slots=True, frozen=True)
class ReportRequest:
    """Everything needed to write one report and its thinking file.

    Attributes:
        kind: Tool id or check kind leading the file name.
        content: Visible report text.
        save_dir: Target directory; created when missing.
        thinking: Reasoning trace; no thinking file is written when empty.
        variant: Optional variant segment of the file name.
        description: Optional free-text segment of the file name.
        skip_thinking: Suppress the thinking file.
        heading: ``(title, value)`` shown at the top of the thinking file.
        detail_lines: Extra lines placed in the stats block.
        prompt_tokens: Input tokens for the stats block.
        response_tokens: Output tokens for the stats block.
    """

    kind: str
    content: str
    save_dir: Path
    thinking: str = ""
    variant: str | None = None
    description: str | None = None
    skip_thinking: bool = False
    heading: tuple[str, str] | None = None
    detail_lines: Sequence[str] = field(default_factory=tuple)
    prompt_tokens: int = 0
    response_tokens: int = 0

    @property
    def writes_thinking(self) -> bool:
        return bool(self.thinking) and not self.skip_thinking


def format_timestamp(moment: datetime) -> str:
    """Second-resolution, filesystem-safe UTC timestamp."""

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def format_human_datetime(moment: datetime) -> str:
    """e.g. ``Saturday, October 17, 2026 at 3:04 PM``."""

    local = moment.astimezone() if moment.tzinfo is not None else moment
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return (
        f"{local:%A}, {local:%B} {local.day}, {local.year} "
        f"at {hour}:{local.minute:02d} {meridiem}"
    )


def build_base_name(
    kind: str,
    timestamp: str,
    *,
    variant: str | None = None,
    description: str | None = None,
) -> str:
    """Deterministic file stem for a report."""

    parts = [_safe_segment(kind) or "report"]
    for segment in (variant, description):
        cleaned = _safe_segment(segment)
        if cleaned:
            parts.append(cleaned)
    parts.append(timestamp)
    return "_".join(parts)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportAssembler:
    """Turns tool output plus run metadata into files on disk."""

    def __init__(
        self,
        config: Configuration,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config
        self._clock = clock

    def write(self, request: ReportRequest, *, moment: datetime | None = None) -> list[Path]:
        """Write the report (and thinking file) and return absolute paths.

        The primary report comes first, the thinking file second when present.
        """

        when = moment or self._clock()
        save_dir = Path(request.save_dir).expanduser()
        save_dir.mkdir(parents=True, exist_ok=True)
        base_name = self._available_base_name(request, save_dir, format_timestamp(when))

        written: list[Path] = []
        report_path = write_text(save_dir / f"{base_name}.txt", request.content)
        written.append(report_path)
        LOGGER.info("Report saved to %s", report_path)

        if request.writes_thinking:
            thinking_path = write_text(
                save_dir / f"{base_name}_thinking.txt",
                self.render_thinking(request, when),
            )
            written.append(thinking_path)
            LOGGER.info("Thinking saved to %s", thinking_path)
        return written

    def render_thinking(self, request: ReportRequest, moment: datetime) -> str:
        sections: list[str] = []
        if request.heading is not None:
            title, value = request.heading
            sections.append(f"=== {title} ===\n{value}\n" if value else f"=== {title} ===\n")
        sections.append(
            "=== AI'S THINKING PROCESS ===\n\n"
            f"{request.thinking}\n\n"
            "=== END AI'S THINKING PROCESS ==="
        )
        sections.append(self.render_stats(request, moment))
        return "\n".join(sections)

    def render_stats(self, request: ReportRequest, moment: datetime) -> str:
        config = self._config
        lines = ["", f"Details:  {format_human_datetime(moment)}"]
        lines.extend(request.detail_lines)
        lines.extend(
            [
                f"Max request timeout: {config.request_timeout_seconds} seconds",
                f"Max AI model context window: {config.context_window_tokens} tokens",
                f"AI model thinking budget: {config.thinking_budget_tokens} tokens",
                f"Desired output tokens: {config.desired_output_tokens} tokens",
                "",
                f"Input tokens: {request.prompt_tokens}",
                f"Output tokens: {request.response_tokens}",
                "",
            ]
        )
        return "\n".join(lines)

    def _available_base_name(self, request: ReportRequest, save_dir: Path, timestamp: str) -> str:
        stamp = timestamp
        for suffix in range(2, _MAX_COLLISION_SUFFIX + 2):
            base_name = build_base_name(
                request.kind,
                stamp,
                variant=request.variant,
                description=request.description,
            )
            if not self._is_taken(save_dir, base_name):
                return base_name
            stamp = f"{timestamp}-{suffix}"
        raise FileExistsError(f"No free report name for {request.kind} at {timestamp} in {save_dir}")

    @staticmethod
    def _is_taken(save_dir: Path, base_name: str) -> bool:
        return (save_dir / f"{base_name}.txt").exists() or (
            save_dir / f"{base_name}_thinking.txt"
        ).exists()


def _safe_segment(value: str | None) -> str:
    if not value:
        return ""
    return _UNSAFE_NAME_CHARS.sub("_", value.strip()).strip("_")


def describe_paths(paths: Sequence[Path], labels: Mapping[int, str] | None = None) -> list[str]:
    """Progress lines announcing where files were written."""

    names = dict(labels or {0: "Report saved to", 1: "AI thinking saved to"})
    return [f"{names.get(index, 'Saved')}: {path}" for index, path in enumerate(paths)]
