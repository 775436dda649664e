"""Rich-text run builder: inline HTML → annotated text runs.

Runs are built by a recursive walk that ORs annotation flags downward,
then normalised by ``compact_runs`` (trim, drop empties, merge adjacent
runs with identical styling, re-split at the chunk limit). Targets with
a per-block run ceiling apply ``cap_runs`` on top.
"""

from __future__ import annotations

import logging
import re

from chatexport.convert.math import extract_latex, is_math
from chatexport.convert.tree import Element, Text
from chatexport.core.models import PLAIN, Annotations, RichTextRun, RunKind

log = logging.getLogger(__name__)

CHUNK_LIMIT = 2000
MAX_RUNS = 100
ELLIPSIS = "..."
MAX_DEPTH = 64

_TAG_ANNOTATIONS: dict[str, dict[str, bool]] = {
    "strong": {"bold": True},
    "b": {"bold": True},
    "em": {"italic": True},
    "i": {"italic": True},
    "u": {"underline": True},
    "ins": {"underline": True},
    "s": {"strikethrough": True},
    "del": {"strikethrough": True},
    "strike": {"strikethrough": True},
    "code": {"code": True},
    "kbd": {"code": True},
    "samp": {"code": True},
}

# Block-level tags met inside inline content end with a line break
_BREAKING_TAGS = frozenset({
    "p", "div", "section", "article", "li", "tr", "pre", "blockquote",
    "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "table", "figure",
})

_WS_RE = re.compile(r"[ \t\n\r\f]+")
_LINE_PAD_RE = re.compile(r" *\n *")


def chunk_text(text: str, limit: int = CHUNK_LIMIT) -> list[str]:
    """Split text into consecutive pieces of at most ``limit`` characters."""
    return [text[i:i + limit] for i in range(0, len(text), limit)]


def text_runs(
    text: str,
    annotations: Annotations = PLAIN,
    link: str | None = None,
) -> list[RichTextRun]:
    """Chunked text runs sharing one annotation set."""
    return [
        RichTextRun(RunKind.TEXT, chunk, annotations, link)
        for chunk in chunk_text(text)
    ]


def build_runs(
    node: Element | Text,
    annotations: Annotations = PLAIN,
    link: str | None = None,
    depth: int = 0,
) -> list[RichTextRun]:
    """Convert one inline node (and its descendants) into runs, in reading order."""
    if isinstance(node, Text):
        return text_runs(_WS_RE.sub(" ", node.value), annotations, link)

    if depth > MAX_DEPTH:
        log.debug("Inline nesting deeper than %d, flattening <%s>", MAX_DEPTH, node.tag)
        return text_runs(_WS_RE.sub(" ", node.text_content()), annotations, link)

    if is_math(node):
        latex = extract_latex(node)
        if latex:
            return [RichTextRun(RunKind.EQUATION, latex)]

    tag = node.tag
    if tag == "br":
        return text_runs("\n", annotations, link)
    if tag == "img":
        src = node.get("src").strip()
        return [RichTextRun(RunKind.IMAGE, src, annotations, link)] if src else []

    patch = _TAG_ANNOTATIONS.get(tag)
    if patch:
        annotations = annotations.merge(**patch)
    if tag == "a" and node.get("href").strip():
        link = node.get("href").strip()

    out: list[RichTextRun] = []
    for child in node.children:
        out.extend(build_runs(child, annotations, link, depth + 1))

    if tag in _BREAKING_TAGS and out:
        out.extend(text_runs("\n", annotations, link))
    return out


def has_content(run: RichTextRun) -> bool:
    return bool(run.content.strip())


def trim_runs(runs: list[RichTextRun]) -> list[RichTextRun]:
    """Drop whitespace-only runs from both ends."""
    start, end = 0, len(runs)
    while start < end and not has_content(runs[start]):
        start += 1
    while end > start and not has_content(runs[end - 1]):
        end -= 1
    return runs[start:end]


def compact_runs(runs: list[RichTextRun], limit: int = CHUNK_LIMIT) -> list[RichTextRun]:
    """Trim, drop empty runs and merge neighbours with identical styling.

    Only text runs merge. Text longer than ``limit``, merged or not, is
    re-split at the limit boundary.
    """
    merged: list[RichTextRun] = []
    for run in trim_runs(runs):
        if not run.content:
            continue
        if run.kind != RunKind.TEXT:
            merged.append(run)
            continue

        content = run.content
        prev = merged[-1] if merged else None
        if prev is not None and prev.kind == RunKind.TEXT and prev.key == run.key:
            content = merged.pop().content + content
        merged.extend(
            RichTextRun(run.kind, chunk, run.annotations, run.link)
            for chunk in chunk_text(content, limit)
        )
    return merged


def _flatten(run: RichTextRun) -> str:
    if run.kind == RunKind.EQUATION:
        return f" {run.content} "
    if run.kind == RunKind.IMAGE:
        return ""
    return run.content


def cap_runs(
    runs: list[RichTextRun],
    max_runs: int = MAX_RUNS,
    limit: int = CHUNK_LIMIT,
) -> list[RichTextRun]:
    """Bound the number of runs, collapsing the overflow into one plain tail run.

    The first ``max_runs - 1`` runs are kept verbatim. Everything after
    them becomes a single unstyled run, truncated with an ellipsis when
    longer than ``limit``.
    """
    if len(runs) <= max_runs:
        return list(runs)

    keep = max(1, max_runs - 1)
    head = list(runs[:keep])
    overflow = "".join(_flatten(r) for r in runs[keep:])
    if len(overflow) > limit:
        overflow = overflow[: limit - len(ELLIPSIS)] + ELLIPSIS
    log.debug("Collapsed %d overflow runs into one tail run", len(runs) - keep)
    head.append(RichTextRun(RunKind.TEXT, overflow or ELLIPSIS))
    return head


def tidy_edges(runs: list[RichTextRun]) -> list[RichTextRun]:
    """Strip outer whitespace and spaces around line breaks inside text runs."""
    out: list[RichTextRun] = []
    for run in runs:
        if run.kind == RunKind.TEXT and not run.annotations.code:
            run = RichTextRun(run.kind, _LINE_PAD_RE.sub("\n", run.content), run.annotations, run.link)
        out.append(run)
    if out and out[0].kind == RunKind.TEXT:
        first = out[0]
        out[0] = RichTextRun(first.kind, first.content.lstrip(), first.annotations, first.link)
    if out and out[-1].kind == RunKind.TEXT:
        last = out[-1]
        out[-1] = RichTextRun(last.kind, last.content.rstrip(), last.annotations, last.link)
    return [r for r in out if r.content]


def inline_runs(node: Element | Text, depth: int = 0) -> list[RichTextRun]:
    """Runs for a block's inline content, finalised for storage on a ContentBlock."""
    return tidy_edges(compact_runs(build_runs(node, depth=depth)))
