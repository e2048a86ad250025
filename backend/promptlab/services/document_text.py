"""Flatten block-editor document JSON into plain markdown-ish text.

Documents are stored as a list of editor blocks (paragraph, heading, list
items, code, tables, media). Variables that read ``content`` want readable
text, not JSON.
"""
import json
from typing import Any

MEDIA_BLOCK_TYPES = ("image", "video", "audio", "file")


def _inline_text(inline: Any) -> str:
    if not inline:
        return ""
    if isinstance(inline, str):
        return inline
    if isinstance(inline, list):
        parts = []
        for item in inline:
            if not isinstance(item, dict):
                continue
            if item.get("type") == "link":
                # Links nest their own inline content
                parts.append(_inline_text(item.get("content")) or item.get("href", ""))
            else:
                parts.append(item.get("text", ""))
        return "".join(parts)
    return ""


def _render_block(block: Any) -> str:
    if not isinstance(block, dict):
        return ""
    block_type = block.get("type", "paragraph")
    props = block.get("props") or {}

    if block_type == "table":
        rows = (block.get("content") or {}).get("rows")
        if not isinstance(rows, list):
            return ""
        lines = []
        for row in rows:
            cells = row.get("cells") if isinstance(row, dict) else None
            if not cells:
                continue
            lines.append("| " + " | ".join(_inline_text(c) for c in cells) + " |")
        return "\n".join(lines)

    if block_type in MEDIA_BLOCK_TYPES:
        name = props.get("name") or props.get("caption") or block_type
        return f"[{block_type.upper()}: {name}]({props.get('url', '')})"

    text = _inline_text(block.get("content"))
    if block_type == "heading":
        return f"{'#' * int(props.get('level') or 1)} {text}"
    if block_type == "bulletListItem":
        return f"• {text}"
    if block_type == "numberedListItem":
        return f"{props.get('start') or 1}. {text}"
    if block_type == "checkListItem":
        return f"{'[x]' if props.get('checked') else '[ ]'} {text}"
    if block_type == "codeBlock":
        return f"```{props.get('language', '')}\n{text}\n```"
    return text


def document_to_text(content: Any) -> str:
    """Render stored document content as text; unknown shapes give ''.

    Strings that look like serialized JSON are decoded first, anything else
    is returned as-is.
    """
    if not content:
        return ""
    if isinstance(content, str):
        stripped = content.strip()
        if stripped.startswith(("[", "{")):
            try:
                return document_to_text(json.loads(stripped))
            except ValueError:
                return content
        return content
    if isinstance(content, dict):
        content = [content]
    if not isinstance(content, list):
        return ""
    rendered = (_render_block(block) for block in content)
    return "\n\n".join(part for part in rendered if part)
