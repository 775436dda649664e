"""Plain-text renderer."""

from __future__ import annotations

import re

from chatexport.core.models import LIST_TYPES, BlockType, ContentBlock, ExportOptions, RunKind
from chatexport.render.base import DEFAULT_APP_NAME, Document, document_title, prepare_messages

MIME_TYPE = "text/plain;charset=utf-8"

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _runs_text(block: ContentBlock) -> str:
    return "".join(
        r.content for r in block.runs if r.kind in (RunKind.TEXT, RunKind.EQUATION)
    )


def block_to_text(block: ContentBlock, depth: int = 0) -> str:
    pad = "  " * depth
    if block.type == BlockType.DIVIDER:
        return ""
    if block.type == BlockType.EQUATION:
        return pad + block.expression
    if block.type in LIST_TYPES:
        lines = [pad + _runs_text(block)]
        lines.extend(block_to_text(child, depth + 1) for child in block.children)
        return "\n".join(lines)
    return "\n".join(pad + line for line in _runs_text(block).split("\n"))


def blocks_to_text(blocks: list[ContentBlock]) -> str:
    """Block text with boundaries kept as blank lines; list items stay on consecutive lines."""
    parts: list[str] = []
    prev: ContentBlock | None = None
    for block in blocks:
        text = block_to_text(block)
        if not text.strip():
            prev = block
            continue
        if parts:
            tight = prev is not None and prev.type in LIST_TYPES and block.type in LIST_TYPES
            parts.append("\n" if tight else "\n\n")
        parts.append(text)
        prev = block
    return "".join(parts)


def render_text(
    document: Document,
    options: ExportOptions,
    app_name: str = DEFAULT_APP_NAME,
) -> str:
    title = document_title(document, options, app_name)
    out = [f"{title}\n\n{'=' * len(title)}\n\n"]
    for message in prepare_messages(document.messages, options):
        if message.label:
            out.append(f"{message.label}:\n")
        out.append(blocks_to_text(message.blocks) + "\n\n")
    return _BLANK_RUN_RE.sub("\n\n", "".join(out)).strip()
