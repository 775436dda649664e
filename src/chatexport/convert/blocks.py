"""HTML-to-block converter: one message fragment → ordered ContentBlocks.

The walk is structural. Block-level tags map to block types; runs of
inline siblings are gathered into a single paragraph; anything that
cannot be classified degrades to inline text rather than being dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from chatexport.convert.math import extract_latex, is_display_math
from chatexport.convert.rich_text import MAX_DEPTH, compact_runs, inline_runs, text_runs
from chatexport.convert.tree import Element, Node, Text, parse_clean
from chatexport.core.errors import ConversionUnsupported
from chatexport.core.models import BlockType, ContentBlock, RichTextRun, RunKind

log = logging.getLogger(__name__)

PLAIN_TEXT_LANGUAGE = "plain text"

LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "sh": "bash",
    "shell": "bash",
    "yml": "yaml",
    "cs": "c#",
    "csharp": "c#",
    "cpp": "c++",
}

SUPPORTED_LANGUAGES = frozenset({
    "plain text", "abap", "arduino", "bash", "basic", "c", "c#", "c++", "clojure", "coffeescript",
    "css", "dart", "diff", "docker", "elixir", "elm", "erlang", "flow", "fortran", "f#", "gherkin",
    "glsl", "go", "graphql", "groovy", "haskell", "html", "java", "javascript", "json", "julia",
    "kotlin", "latex", "less", "lisp", "livescript", "lua", "makefile", "markdown", "markup", "matlab",
    "mermaid", "nix", "objective-c", "ocaml", "pascal", "perl", "php", "powershell", "prolog",
    "protobuf", "python", "r", "reason", "ruby", "rust", "sass", "scala", "scheme", "scss",
    "shell", "sql", "swift", "toml", "typescript", "vb.net", "verilog", "vhdl", "visual basic",
    "webassembly", "xml", "yaml", "java/c/c++/c#",
})

BLOCK_TAGS = frozenset({
    "p", "div", "section", "article", "main", "header", "footer", "aside", "figure",
    "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "pre", "blockquote", "hr", "table",
})

CONTAINER_TAGS = frozenset({
    "div", "section", "article", "main", "header", "footer", "aside", "figure", "#root",
})

_LANG_RE = re.compile(r"(?:language|lang)-([a-z0-9#+-]+)", re.IGNORECASE)

Handler = Callable[[Element, int], list[ContentBlock]]


# --- Public API ---


def html_to_blocks(html: str) -> list[ContentBlock]:
    """Convert one HTML fragment into an ordered list of content blocks."""
    return convert_children(parse_clean(html), depth=0)


def convert_children(parent: Element, depth: int) -> list[ContentBlock]:
    """Convert an element's children, grouping inline siblings into paragraphs."""
    blocks: list[ContentBlock] = []
    pending: list[Node] = []

    def flush() -> None:
        if pending:
            blocks.extend(_paragraph(Element("span", children=list(pending)), depth))
            pending.clear()

    for child in parent.children:
        if _is_inline(child):
            pending.append(child)
            continue
        flush()
        blocks.extend(convert_node(child, depth + 1))
    flush()
    return blocks


def convert_node(node: Node, depth: int = 0) -> list[ContentBlock]:
    """Convert a single node into zero or more blocks."""
    if isinstance(node, Text):
        if not node.value.strip():
            return []
        return _block(BlockType.PARAGRAPH, inline_runs(node))

    if depth > MAX_DEPTH:
        log.warning("Block nesting deeper than %d, degrading <%s> to text", MAX_DEPTH, node.tag)
        return _block(BlockType.PARAGRAPH, inline_runs(Text(node.text_content())))

    if is_display_math(node):
        latex = extract_latex(node)
        if latex:
            return [ContentBlock(BlockType.EQUATION, expression=latex)]

    try:
        handler = _handler_for(node)
    except ConversionUnsupported as e:
        log.debug("%s; degrading to inline text", e)
        return _fallback(node, depth)
    return handler(node, depth)


def detect_code_language(element: Element, parent: Element | None = None) -> str:
    """Language from a language-*/lang-* class token, validated against the allow-list."""
    class_text = element.get("class")
    if parent is not None:
        class_text = f"{class_text} {parent.get('class')}"
    match = _LANG_RE.search(class_text)
    if not match:
        return PLAIN_TEXT_LANGUAGE
    lang = match.group(1).lower()
    lang = LANGUAGE_ALIASES.get(lang, lang)
    return lang if lang in SUPPORTED_LANGUAGES else PLAIN_TEXT_LANGUAGE


# --- Classification ---


def _is_inline(node: Node) -> bool:
    if isinstance(node, Text):
        return True
    if node.tag in BLOCK_TAGS or node.tag in ("li", "tr"):
        return False
    if is_display_math(node):
        return False
    if node.tag == "code" and "\n" in node.text_content():
        return False
    return not _has_block_descendant(node)


def _has_block_descendant(element: Element) -> bool:
    return element.find(lambda el: el.tag in BLOCK_TAGS or is_display_math(el)) is not None


def _handler_for(element: Element) -> Handler:
    tag = element.tag
    if tag in _HANDLERS:
        return _HANDLERS[tag]
    if tag == "code" and "\n" in element.text_content():
        return _code
    if tag in CONTAINER_TAGS:
        return _container
    raise ConversionUnsupported(f"no block mapping for <{tag}>")


# --- Helpers ---


def _block(block_type: BlockType, runs: list[RichTextRun], **extra) -> list[ContentBlock]:
    """A single-block list, or [] when the block would carry no content."""
    if not runs:
        return []
    return [ContentBlock(block_type, runs=runs, **extra)]


def _paragraph(element: Element, depth: int) -> list[ContentBlock]:
    return _block(BlockType.PARAGRAPH, inline_runs(element, depth))


def _fallback(element: Element, depth: int) -> list[ContentBlock]:
    blocks = _paragraph(element, depth)
    if blocks:
        return blocks
    return convert_children(element, depth)


# --- Handlers ---


def _divider(element: Element, depth: int) -> list[ContentBlock]:
    return [ContentBlock(BlockType.DIVIDER)]


def _heading(element: Element, depth: int) -> list[ContentBlock]:
    level = 2 if element.tag in ("h1", "h2") else 3
    return _block(BlockType.HEADING, inline_runs(element, depth), level=level)


def _quote(element: Element, depth: int) -> list[ContentBlock]:
    return _block(BlockType.QUOTE, inline_runs(element, depth))


def _code(element: Element, depth: int) -> list[ContentBlock]:
    code_el = element
    parent = None
    if element.tag == "pre":
        inner = element.find(lambda el: el.tag == "code")
        if inner is not None:
            code_el, parent = inner, element
    language = detect_code_language(code_el, parent)
    text = element.text_content().strip("\n")
    if not text.strip():
        return []
    runs = compact_runs(text_runs(text))
    return [ContentBlock(BlockType.CODE, runs=runs, language=language)]


def _container(element: Element, depth: int) -> list[ContentBlock]:
    if _has_block_descendant(element):
        return convert_children(element, depth)
    return _paragraph(element, depth)


def _list(element: Element, depth: int) -> list[ContentBlock]:
    item_type = BlockType.NUMBERED_ITEM if element.tag == "ol" else BlockType.BULLETED_ITEM
    blocks: list[ContentBlock] = []

    for child in element.children:
        if isinstance(child, Text):
            if child.value.strip():
                blocks.extend(_block(item_type, inline_runs(child)))
            continue
        if child.tag in ("ul", "ol"):
            # Stray nested list directly under a list: treat as siblings
            blocks.extend(_list(child, depth + 1))
            continue
        if child.tag != "li":
            blocks.extend(_block(item_type, inline_runs(child, depth + 1)))
            continue

        inline_part = [c for c in child.children
                       if not (isinstance(c, Element) and c.tag in ("ul", "ol"))]
        nested = [c for c in child.children
                  if isinstance(c, Element) and c.tag in ("ul", "ol")]

        runs = inline_runs(Element("span", children=inline_part), depth + 1)
        children: list[ContentBlock] = []
        for sub in nested:
            children.extend(_list(sub, depth + 1))

        if runs:
            blocks.append(ContentBlock(item_type, runs=runs, children=children))
        else:
            # Item without text of its own: keep its nested items
            blocks.extend(children)
    return blocks


def _table(element: Element, depth: int) -> list[ContentBlock]:
    """Tables degrade to one paragraph per row, cells separated by ' | '."""
    blocks: list[ContentBlock] = []
    for row in _iter_rows(element):
        runs: list[RichTextRun] = []
        for cell in row.elements():
            if cell.tag not in ("td", "th"):
                continue
            cell_runs = inline_runs(cell, depth + 1)
            if not cell_runs:
                continue
            if runs:
                runs.append(RichTextRun(RunKind.TEXT, " | "))
            runs.extend(cell_runs)
        blocks.extend(_block(BlockType.PARAGRAPH, compact_runs(runs)))
    return blocks


def _iter_rows(table: Element):
    for child in table.elements():
        if child.tag == "tr":
            yield child
        elif child.tag in ("thead", "tbody", "tfoot"):
            yield from (el for el in child.elements() if el.tag == "tr")


_HANDLERS: dict[str, Handler] = {
    "hr": _divider,
    "h1": _heading,
    "h2": _heading,
    "h3": _heading,
    "h4": _heading,
    "h5": _heading,
    "h6": _heading,
    "ul": _list,
    "ol": _list,
    "pre": _code,
    "blockquote": _quote,
    "p": _paragraph,
    "table": _table,
}
