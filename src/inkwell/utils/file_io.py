"""File IO helpers for reading input documents and writing reports."""

from __future__ import annotations

import codecs
import locale
import os
import re
import tempfile
from pathlib import Path

from ..ai.errors import EmptyDocumentError, MissingDocumentError

__all__ = [
    "read_text",
    "read_document",
    "write_text",
    "resolve_path",
    "count_words",
]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
    codecs.BOM_UTF32_LE: "utf-32-le",
    codecs.BOM_UTF32_BE: "utf-32-be",
}
_WORD_PATTERN = re.compile(r"\S+")


def read_text(
    path: Path | str,
    *,
    encoding: str | None = None,
    errors: str = "strict",
    normalize_newlines: bool = True,
) -> str:
    """Read a text file with encoding detection and optional newline normalization."""

    target = Path(path)
    raw = target.read_bytes()
    detected_encoding = encoding or _detect_encoding(raw)
    text = raw.decode(detected_encoding, errors=errors)
    text = _strip_bom(text)
    return _normalize_newlines(text) if normalize_newlines else text


def read_document(path: Path | str, *, encoding: str | None = None) -> str:
    """Read a required input document.

    Raises:
        MissingDocumentError: if ``path`` does not name an existing file.
        EmptyDocumentError: if the file holds nothing but whitespace.
    """

    target = Path(path)
    if not target.is_file():
        raise MissingDocumentError.for_path(target)
    text = read_text(target, encoding=encoding)
    if not text.strip():
        raise EmptyDocumentError.for_path(target)
    return text


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Write text to disk, creating parent directories; returns the absolute path."""

    target = Path(path).expanduser().resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    normalized = _normalize_newlines(content)
    if not atomic:
        with target.open("w", encoding=encoding, newline="") as handle:
            handle.write(normalized)
        return target

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(normalized)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover
            os.unlink(tmp_name)
    return target


def resolve_path(path: Path | str, base_dir: Path | str) -> Path:
    """Return ``path`` unchanged when absolute, otherwise relative to ``base_dir``."""

    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return Path(base_dir).expanduser() / candidate


def count_words(text: str) -> int:
    """Count whitespace-separated words."""

    return len(_WORD_PATTERN.findall(text or ""))


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding

    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for candidate in ("utf-8", preferred, "latin-1"):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            raw.decode(candidate)
            return candidate
        except UnicodeDecodeError:
            continue
    return "utf-8"


def _normalize_newlines(text: str) -> str:
    if "\r" not in text:
        return text
    text = text.replace("\r\n", "\n")
    return text.replace("\r", "\n")


def _strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text
