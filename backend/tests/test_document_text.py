# ruff: noqa: S101
from __future__ import annotations

import json

from promptlab.services.document_text import document_to_text


def _inline(value: str) -> list[dict]:
    return [{"type": "text", "text": value}]


def test_block_types_flatten_to_text() -> None:
    blocks = [
        {"type": "heading", "props": {"level": 1}, "content": _inline("Plan")},
        {"type": "paragraph", "content": _inline("Intro")},
        {"type": "numberedListItem", "content": _inline("First")},
        {"type": "checkListItem", "props": {"checked": True}, "content": _inline("Done")},
        {"type": "checkListItem", "props": {"checked": False}, "content": _inline("Todo")},
        {"type": "codeBlock", "props": {"language": "py"}, "content": _inline("print(1)")},
        {"type": "image", "props": {"name": "diagram", "url": "https://cdn/x.png"}},
        {"type": "paragraph", "content": []},
    ]
    assert document_to_text(blocks) == "\n\n".join(
        [
            "# Plan",
            "Intro",
            "1. First",
            "[x] Done",
            "[ ] Todo",
            "```py\nprint(1)\n```",
            "[IMAGE: diagram](https://cdn/x.png)",
        ]
    )


def test_table_rows() -> None:
    table = {
        "type": "table",
        "content": {"rows": [{"cells": [_inline("a"), _inline("b")]}, {"cells": [_inline("1"), _inline("2")]}]},
    }
    assert document_to_text([table]) == "| a | b |\n| 1 | 2 |"


def test_links_use_their_text() -> None:
    block = {
        "type": "paragraph",
        "content": [
            {"type": "text", "text": "See "},
            {"type": "link", "href": "https://example.com", "content": _inline("the site")},
        ],
    }
    assert document_to_text([block]) == "See the site"


def test_serialized_and_plain_strings() -> None:
    encoded = json.dumps([{"type": "bulletListItem", "content": _inline("one")}])
    assert document_to_text(encoded) == "• one"
    assert document_to_text("just text") == "just text"
    assert document_to_text("[not json") == "[not json"
    assert document_to_text(None) == ""
    assert document_to_text(42) == ""
