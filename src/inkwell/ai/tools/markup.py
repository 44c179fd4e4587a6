"""Strip residual Markdown syntax from model output.

The system instruction already asks for plain text; this pass removes what
slips through. It is idempotent: running it twice gives the same text.
"""

from __future__ import annotations

import re

__all__ = ["strip_markup"]

_FENCE = re.compile(r"^[ \t]*(`{3,}|~{3,})[^\n]*$", re.MULTILINE)
_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.MULTILINE)
_SETEXT_RULE = re.compile(r"^[ \t]*(?:[-*_][ \t]*){3,}$", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^[ \t]*(?:>[ \t]?)+", re.MULTILINE)
_BULLET = re.compile(r"^([ \t]*)[*+-][ \t]+", re.MULTILINE)
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_BOLD = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1", re.DOTALL)
_ITALIC_STAR = re.compile(r"(?<![\w*])\*(?=\S)([^*\n]+?)(?<=\S)\*(?![\w*])")
_ITALIC_UNDERSCORE = re.compile(r"(?<![\w_])_(?=\S)([^_\n]+?)(?<=\S)_(?![\w_])")
_STRIKE = re.compile(r"~~(?=\S)(.+?)(?<=\S)~~")
_INLINE_CODE = re.compile(r"`+([^`\n]+?)`+")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def strip_markup(text: str) -> str:
    """Return ``text`` with Markdown formatting syntax removed."""

    if not text:
        return ""
    # Markers can be stacked ("> - **x**"); repeat until a pass changes nothing.
    previous = None
    result = text
    while previous != result:
        previous = result
        result = _strip_once(result)
    return result


def _strip_once(text: str) -> str:
    result = _FENCE.sub("", text)
    result = _HEADING.sub("", result)
    result = _SETEXT_RULE.sub("", result)
    result = _BLOCKQUOTE.sub("", result)
    result = _BULLET.sub(r"\1", result)
    result = _IMAGE.sub(r"\1", result)
    result = _LINK.sub(r"\1", result)
    result = _BOLD.sub(r"\2", result)
    result = _STRIKE.sub(r"\1", result)
    result = _ITALIC_STAR.sub(r"\1", result)
    result = _ITALIC_UNDERSCORE.sub(r"\1", result)
    result = _INLINE_CODE.sub(r"\1", result)
    result = _EXTRA_BLANK_LINES.sub("\n\n", result)
    return result.strip("\n")
