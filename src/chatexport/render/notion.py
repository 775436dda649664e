"""Notion block payloads and page request planning.

Every payload produced here already satisfies the Notion API ceilings:
at most 2000 characters per rich-text item, 100 rich-text items per
block, 100 children per block and 100 blocks per request.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from urllib.parse import urlparse

from chatexport.convert.rich_text import CHUNK_LIMIT, MAX_RUNS, cap_runs, compact_runs
from chatexport.core.errors import BatchLimitExceeded
from chatexport.core.models import (
    LIST_TYPES,
    BlockType,
    ContentBlock,
    ExportOptions,
    RichTextRun,
    RunKind,
)
from chatexport.render.base import prepare_messages
from chatexport.render.labels import with_content_date_stamp

log = logging.getLogger(__name__)

BATCH_SIZE = 100
MAX_CHILDREN = 100
# Levels of nested children accepted in one request
MAX_NESTING = 2
DEFAULT_PAGE_TITLE = "AI Chat Export"
IMAGE_PLACEHOLDER = "[image]"

_HEX32_RE = re.compile(r"^[a-fA-F0-9]{32}$")
_UUID_RE = re.compile(r"^[a-fA-F0-9]{8}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{12}$")
_NON_ID_RE = re.compile(r"[^a-fA-F0-9-]")
_LINK_SCHEMES = ("http://", "https://", "mailto:")


# --- Page ids ---


def normalize_notion_page_id(raw: str | None) -> str:
    """Dashed lowercase UUID from a page URL, 32-hex id or UUID; '' when invalid."""
    value = str(raw or "").strip()
    if not value:
        return ""

    candidate = value
    if re.match(r"^https?://", candidate, re.IGNORECASE):
        last_segment = urlparse(candidate).path.rstrip("/").split("/")[-1].strip()
        candidate = last_segment or candidate

    candidate = candidate.split("#")[0].split("?")[0].strip()
    candidate = _NON_ID_RE.sub("", candidate)
    if not candidate:
        return ""

    compact = candidate.replace("-", "")
    if _HEX32_RE.match(compact):
        # Page URLs end in "<slug>-<32 hex>"; the id is always the last 32 chars
        return "-".join((
            compact[:8], compact[8:12], compact[12:16], compact[16:20], compact[20:],
        )).lower()
    if len(compact) > 32 and _HEX32_RE.match(compact[-32:]):
        return normalize_notion_page_id(compact[-32:])
    if _UUID_RE.match(candidate):
        return candidate.lower()
    return ""


# --- Rich text ---


def _safe_link(url: str | None) -> str | None:
    if url and url.strip().lower().startswith(_LINK_SCHEMES):
        return url.strip()
    return None


def _notion_runs(runs: list[RichTextRun]) -> list[RichTextRun]:
    """Notion-safe runs: images become link text or go, unsafe links are cleared.

    The result is re-compacted afterwards, so runs whose links only differed
    before clearing merge again.
    """
    out: list[RichTextRun] = []
    for run in runs:
        if run.kind != RunKind.IMAGE:
            link = _safe_link(run.link)
            out.append(run if link == run.link else replace(run, link=link))
            continue
        src = _safe_link(run.content)
        if src and not src.lower().startswith("mailto:"):
            out.append(RichTextRun(RunKind.TEXT, IMAGE_PLACEHOLDER, run.annotations, src))
    return cap_runs(compact_runs(out), MAX_RUNS, CHUNK_LIMIT)


def rich_text_item(run: RichTextRun) -> dict:
    if run.kind == RunKind.EQUATION:
        return {"type": "equation", "equation": {"expression": run.content}}
    text: dict = {"content": run.content}
    link = _safe_link(run.link)
    if link:
        text["link"] = {"url": link}
    annotations = run.annotations.to_dict()
    annotations["color"] = "default"
    return {"type": "text", "text": text, "annotations": annotations}


def rich_text(runs: list[RichTextRun]) -> list[dict]:
    return [rich_text_item(r) for r in _notion_runs(runs)]


def _label_text(label: str) -> list[dict]:
    return [rich_text_item(RichTextRun(RunKind.TEXT, label))]


# --- Blocks ---


def _payload(block_type: str, body: dict) -> dict:
    return {"object": "block", "type": block_type, block_type: body}


def _flatten_items(blocks: list[ContentBlock]) -> list[ContentBlock]:
    """Pre-order list of items with their children detached."""
    out: list[ContentBlock] = []
    for block in blocks:
        out.append(ContentBlock(block.type, runs=block.runs))
        out.extend(_flatten_items(block.children))
    return out


def _list_payloads(block: ContentBlock, nesting: int) -> list[dict]:
    """One list item payload, followed by any children past the per-block cap.

    An item left without text takes no payload of its own; its children
    take its place.
    """
    body: dict = {"rich_text": rich_text(block.runs)}
    children = block.children
    if not body["rich_text"]:
        return [p for c in children for p in _list_payloads(c, nesting)]
    if children and nesting >= MAX_NESTING:
        children = _flatten_items(children)
        trailing = [p for c in children for p in _list_payloads(c, nesting)]
        return [_payload(block.type.value, body), *trailing]

    child_payloads = [p for c in children for p in _list_payloads(c, nesting + 1)]
    hoisted: list[dict] = []
    if len(child_payloads) > MAX_CHILDREN:
        log.debug("List item has %d children; moving %d after it",
                  len(child_payloads), len(child_payloads) - MAX_CHILDREN)
        child_payloads, hoisted = child_payloads[:MAX_CHILDREN], child_payloads[MAX_CHILDREN:]
    if child_payloads:
        body["children"] = child_payloads
    return [_payload(block.type.value, body), *hoisted]


def block_payloads(block: ContentBlock) -> list[dict]:
    """Notion payload(s) for one content block."""
    t = block.type
    if t == BlockType.DIVIDER:
        return [_payload("divider", {})]
    if t == BlockType.EQUATION:
        return [_payload("equation", {"expression": block.expression})]
    if t in LIST_TYPES:
        return _list_payloads(block, nesting=0)
    body = {"rich_text": rich_text(block.runs)}
    if not body["rich_text"]:
        # Nothing left once unsupported images are dropped
        return []
    if t == BlockType.HEADING:
        return [_payload(f"heading_{3 if block.level >= 3 else 2}", body)]
    if t == BlockType.CODE:
        body["language"] = block.language
        return [_payload("code", body)]
    if t == BlockType.QUOTE:
        return [_payload("quote", body)]
    return [_payload("paragraph", body)]


def blocks_to_notion(blocks: list[ContentBlock]) -> list[dict]:
    return [p for block in blocks for p in block_payloads(block)]


def build_notion_blocks(messages, options: ExportOptions) -> list[dict]:
    """Full page body: label heading, content and a divider per message."""
    out: list[dict] = []
    for message in prepare_messages(messages, options):
        if message.label:
            out.append(_payload("heading_3", {"rich_text": _label_text(message.label)}))
        out.extend(blocks_to_notion(message.blocks))
        out.append(_payload("divider", {}))
    return out


# --- Request planning ---


def paginate(blocks: list[dict], size: int = BATCH_SIZE) -> list[list[dict]]:
    return [blocks[i:i + size] for i in range(0, len(blocks), size)]


def check_batch(children: list[dict], limit: int = BATCH_SIZE) -> list[dict]:
    if len(children) > limit:
        raise BatchLimitExceeded(f"{len(children)} blocks in one request (limit {limit})")
    return children


@dataclass
class NotionPagePlan:
    """Requests needed to materialise one page: a create body, then appends."""

    create_body: dict
    append_bodies: list[dict] = field(default_factory=list)

    @property
    def request_count(self) -> int:
        return 1 + len(self.append_bodies)


def page_title(title: str | None, options: ExportOptions) -> str:
    return with_content_date_stamp((title or "").strip() or DEFAULT_PAGE_TITLE, options)


def plan_page(parent_page_id: str, title: str, blocks: list[dict]) -> NotionPagePlan:
    """Split a block list into one page-creation body and sequential append bodies."""
    batches = paginate(blocks)
    first = check_batch(batches[0]) if batches else []
    create_body = {
        "parent": {"type": "page_id", "page_id": parent_page_id},
        "properties": {
            "title": {"title": [{"type": "text", "text": {"content": title}}]},
        },
        "children": first,
    }
    appends = [{"children": check_batch(batch)} for batch in batches[1:]]
    return NotionPagePlan(create_body, appends)
