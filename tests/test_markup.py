from __future__ import annotations

import pytest

from inkwell.ai.tools.markup import strip_markup


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("## Findings\nText", "Findings\nText"),
        ("**bold** and __strong__", "bold and strong"),
        ("an *aside* and _another_", "an aside and another"),
        ("- first\n* second\n+ third", "first\nsecond\nthird"),
        ("> quoted", "quoted"),
        ("see [the map](http://example.com)", "see the map"),
        ("```text\ncode\n```", "code"),
        ("use `inline` code", "use inline code"),
        ("~~gone~~ kept", "gone kept"),
        ("one\n\n\n\ntwo", "one\n\ntwo"),
    ],
)
def test_strip_markup_removes_formatting(raw: str, expected: str) -> None:
    assert strip_markup(raw) == expected


def test_plain_prose_is_untouched() -> None:
    text = "Mara's snake_case_name stays; 3 * 4 = 12."

    assert strip_markup(text) == text


def test_stacked_markers_are_removed() -> None:
    assert strip_markup("> - **Note**: careful") == "Note: careful"


def test_strip_markup_is_idempotent() -> None:
    raw = "# Title\n\n- **one** item\n> *quoted* [link](x)\n\n\n\n`code`"

    once = strip_markup(raw)

    assert strip_markup(once) == once


def test_empty_text() -> None:
    assert strip_markup("") == ""
