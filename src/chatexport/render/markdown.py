"""Markdown renderer and a block-level Markdown reader."""

from __future__ import annotations

import re

from chatexport.convert.blocks import PLAIN_TEXT_LANGUAGE
from chatexport.core.models import (
    LIST_TYPES,
    BlockType,
    ContentBlock,
    ExportOptions,
    RichTextRun,
    RunKind,
)
from chatexport.render.base import DEFAULT_APP_NAME, Document, document_title, prepare_messages

MIME_TYPE = "text/markdown;charset=utf-8"

_BLANK_RUN_RE = re.compile(r"\n{3,}")
# A blank line inside one block would split it in two
_INNER_BLANK_RE = re.compile(r"\n[ \t]*(?=\n)")
_NUMBER_MARKER_RE = re.compile(r"^([ \t]*\d+)(?=[.)](?:[ \t]|$))")
_BLOCK_MARKER_RE = re.compile(
    r"^([ \t]*)(?=(?:[-*+]|#{1,6})(?:[ \t]|$)|>|`{3}|~{3}|\$\$|(?:-{3,}|_{3,}|\*{3,})[ \t]*$)"
)
_BACKTICKS_RE = re.compile(r"`+")


# --- Inline runs ---


def _wrap(text: str, marker: str) -> str:
    """Wrap text in an emphasis marker, keeping edge whitespace outside it."""
    core = text.strip()
    if not core:
        return text
    lead = text[: len(text) - len(text.lstrip())]
    trail = text[len(text.rstrip()):]
    return f"{lead}{marker}{core}{marker}{trail}"


def _code_span(text: str) -> str:
    fence = "``" if "`" in text else "`"
    pad = " " if text.startswith("`") or text.endswith("`") else ""
    return f"{fence}{pad}{text}{pad}{fence}"


def _escape_line(line: str) -> str:
    """Backslash-escape a line start that would read as a block marker."""
    if _NUMBER_MARKER_RE.match(line):
        return _NUMBER_MARKER_RE.sub(r"\1\\", line, count=1)
    return _BLOCK_MARKER_RE.sub(r"\1\\", line, count=1)


def _escape_text(text: str, at_line_start: bool) -> str:
    lines = text.split("\n")
    return "\n".join(
        _escape_line(line) if i or at_line_start else line
        for i, line in enumerate(lines)
    )


def run_to_markdown(run: RichTextRun, at_line_start: bool = False, escape: bool = True) -> str:
    if run.kind == RunKind.EQUATION:
        return f"${run.content}$"
    if run.kind == RunKind.IMAGE:
        image = f"![]({run.content})"
        return f"[{image}]({run.link})" if run.link else image

    text = run.content
    ann = run.annotations
    if ann.code:
        text = _code_span(text)
    elif escape:
        text = _escape_text(text, at_line_start)
    if ann.strikethrough:
        text = _wrap(text, "~~")
    if ann.italic:
        text = _wrap(text, "*")
    if ann.bold:
        text = _wrap(text, "**")
    if run.link and text.strip():
        text = f"[{text}]({run.link})"
    return text


def runs_to_markdown(runs: list[RichTextRun], escape: bool = True) -> str:
    """Inline Markdown for a run sequence, kept within a single block.

    With ``escape``, text that would read as a block marker at a line
    start is backslash-escaped.
    """
    out: list[str] = []
    for run in runs:
        at_line_start = not out or out[-1].endswith("\n")
        out.append(run_to_markdown(run, at_line_start, escape))
    # A lone backslash line is a hard break, not a paragraph break
    return _INNER_BLANK_RE.sub(lambda m: "\n\\", "".join(out))


# --- Blocks ---


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else line for line in text.split("\n"))


def code_fence(code: str) -> str:
    """Backtick fence longer than any backtick run inside ``code``."""
    longest = max((len(m) for m in _BACKTICKS_RE.findall(code)), default=0)
    return "`" * max(3, longest + 1)


def _list_item(block: ContentBlock, marker: str, indent: int) -> str:
    pad = " " * indent
    content_indent = indent + len(marker) + 1
    body = runs_to_markdown(block.runs).replace("\n", "\n" + " " * content_indent)
    lines = [f"{pad}{marker} {body}"]
    if block.children:
        lines.append(blocks_to_markdown(block.children, content_indent))
    return "\n".join(lines)


def block_to_markdown(block: ContentBlock) -> str:
    t = block.type
    if t == BlockType.HEADING:
        text = runs_to_markdown(block.runs, escape=False).replace("\n", " ")
        return f"{'#' * block.level} {text}"
    if t == BlockType.CODE:
        lang = "" if block.language == PLAIN_TEXT_LANGUAGE else block.language
        fence = code_fence(block.text)
        return f"{fence}{lang}\n{block.text}\n{fence}"
    if t == BlockType.QUOTE:
        return _indent(runs_to_markdown(block.runs), "> ")
    if t == BlockType.EQUATION:
        return f"$$\n{block.expression}\n$$"
    if t == BlockType.DIVIDER:
        return "---"
    return runs_to_markdown(block.runs)


def blocks_to_markdown(blocks: list[ContentBlock], indent: int = 0) -> str:
    """Render blocks; list siblings are separated by one newline, others by a blank line.

    Nested content is indented to its parent item's content column, which
    depends on the width of the parent's marker.
    """
    parts: list[str] = []
    prev: ContentBlock | None = None
    number = 0
    for block in blocks:
        if block.type in LIST_TYPES:
            if prev is not None and prev.type == block.type:
                number += 1
            else:
                number = 1
            marker = f"{number}." if block.type == BlockType.NUMBERED_ITEM else "-"
            rendered = _list_item(block, marker, indent)
            joiner = "\n" if prev is not None and prev.type in LIST_TYPES else "\n\n"
        else:
            rendered = block_to_markdown(block)
            if indent:
                rendered = _indent(rendered, " " * indent)
            joiner = "\n\n"
        parts.append(rendered if not parts else joiner + rendered)
        prev = block
    return "".join(parts)


def render_markdown(
    document: Document,
    options: ExportOptions,
    app_name: str = DEFAULT_APP_NAME,
) -> str:
    """Full Markdown export: title, one labelled section per message."""
    out = [f"# {document_title(document, options, app_name)}\n\n"]
    for message in prepare_messages(document.messages, options):
        if message.label:
            out.append(f"## {message.label}\n\n")
        out.append(blocks_to_markdown(message.blocks) + "\n\n")
    return _BLANK_RUN_RE.sub("\n\n", "".join(out)).strip()


# --- Reader ---

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_ITEM_RE = re.compile(r"^( *)([-*+]|\d+[.)])\s+(.*)$")
_FENCE_RE = re.compile(r"^(`{3,})([^`]*)$")
_DIVIDER_RE = re.compile(r"^(-{3,}|\*{3,}|_{3,})\s*$")


def _plain(text: str) -> list[RichTextRun]:
    return [RichTextRun(RunKind.TEXT, text)] if text else []


def parse_markdown_blocks(markdown: str) -> list[ContentBlock]:
    """Recover block boundaries from Markdown produced by ``blocks_to_markdown``.

    Inline markup is kept verbatim as plain text; only the block
    structure (headings, lists, fences, quotes, equations, dividers,
    paragraphs) is parsed.
    """
    lines = markdown.split("\n")
    blocks: list[ContentBlock] = []
    paragraph: list[str] = []
    quote: list[str] = []
    stack: list[tuple[int, ContentBlock]] = []

    def flush() -> None:
        if paragraph:
            blocks.append(ContentBlock(BlockType.PARAGRAPH, runs=_plain("\n".join(paragraph))))
            paragraph.clear()
        if quote:
            blocks.append(ContentBlock(BlockType.QUOTE, runs=_plain("\n".join(quote))))
            quote.clear()

    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        fence = _FENCE_RE.match(stripped)
        if fence:
            flush()
            stack.clear()
            body: list[str] = []
            i += 1
            closing = re.compile(rf"^`{{{len(fence.group(1))},}}$")
            while i < len(lines) and not closing.match(lines[i].strip()):
                body.append(lines[i])
                i += 1
            lang = fence.group(2).strip() or PLAIN_TEXT_LANGUAGE
            blocks.append(ContentBlock(BlockType.CODE, runs=_plain("\n".join(body)), language=lang))
            i += 1
            continue

        if stripped == "$$":
            flush()
            stack.clear()
            body = []
            i += 1
            while i < len(lines) and lines[i].strip() != "$$":
                body.append(lines[i].strip())
                i += 1
            blocks.append(ContentBlock(BlockType.EQUATION, expression="\n".join(body)))
            i += 1
            continue

        if not stripped:
            flush()
            stack.clear()
            i += 1
            continue

        item = _ITEM_RE.match(line)
        if item and not _DIVIDER_RE.match(stripped):
            flush()
            indent = len(item.group(1))
            item_type = BlockType.BULLETED_ITEM if item.group(2) in "-*+" else BlockType.NUMBERED_ITEM
            block = ContentBlock(item_type, runs=_plain(item.group(3)))
            while stack and stack[-1][0] >= indent:
                stack.pop()
            if stack:
                stack[-1][1].children.append(block)
            else:
                blocks.append(block)
            stack.append((indent, block))
            i += 1
            continue

        if stack and line.startswith(" "):
            # Continuation line of the current list item
            owner = stack[-1][1]
            owner.runs = _plain(owner.text + "\n" + stripped)
            i += 1
            continue

        stack.clear()
        if _DIVIDER_RE.match(stripped):
            flush()
            blocks.append(ContentBlock(BlockType.DIVIDER))
        elif _HEADING_RE.match(stripped):
            flush()
            hashes, text = _HEADING_RE.match(stripped).groups()
            level = 2 if len(hashes) <= 2 else 3
            blocks.append(ContentBlock(BlockType.HEADING, runs=_plain(text), level=level))
        elif stripped.startswith(">"):
            if paragraph:
                flush()
            quote.append(stripped[1:].lstrip())
        else:
            if quote:
                flush()
            paragraph.append(stripped)
        i += 1

    flush()
    return blocks
