"""HTML, Word and print-oriented HTML renderers.

Message bodies are serialised from content blocks (never from the raw
scraped fragment) and wrapped in a Jinja2 document shell.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup, escape

from chatexport.convert.blocks import PLAIN_TEXT_LANGUAGE
from chatexport.core.models import (
    LIST_TYPES,
    BlockType,
    ContentBlock,
    ExportOptions,
    RichTextRun,
    Role,
    RunKind,
)
from chatexport.render.base import DEFAULT_APP_NAME, Document, document_title, prepare_messages
from chatexport.render.highlight import highlight_code, highlight_css

log = logging.getLogger(__name__)

HTML_MIME_TYPE = "text/html;charset=utf-8"
WORD_MIME_TYPE = "application/msword"
BOM = "\ufeff"

_TEMPLATES_DIR = Path(__file__).parent / "templates"
_SAFE_LINK_SCHEMES = ("http://", "https://", "mailto:", "#")
_SAFE_IMAGE_SCHEMES = ("http://", "https://", "data:image/")


@lru_cache(maxsize=1)
def _env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


# --- Inline runs ---


def _safe_url(url: str | None, schemes: tuple[str, ...]) -> str | None:
    if not url:
        return None
    return url if url.strip().lower().startswith(schemes) else None


def run_to_html(run: RichTextRun) -> str:
    if run.kind == RunKind.EQUATION:
        return f'<span class="math-inline">\\({escape(run.content)}\\)</span>'
    if run.kind == RunKind.IMAGE:
        src = _safe_url(run.content, _SAFE_IMAGE_SCHEMES)
        if src is None:
            log.debug("Dropping image with unsupported source scheme")
            return ""
        out = f'<img src="{escape(src)}" alt="">'
    else:
        out = str(escape(run.content)).replace("\n", "<br>")
        ann = run.annotations
        if ann.code:
            out = f"<code>{out}</code>"
        if ann.bold:
            out = f"<strong>{out}</strong>"
        if ann.italic:
            out = f"<em>{out}</em>"
        if ann.underline:
            out = f"<u>{out}</u>"
        if ann.strikethrough:
            out = f"<s>{out}</s>"
    href = _safe_url(run.link, _SAFE_LINK_SCHEMES)
    if href:
        out = f'<a href="{escape(href)}">{out}</a>'
    return out


def runs_to_html(runs: list[RichTextRun]) -> str:
    return "".join(run_to_html(r) for r in runs)


# --- Blocks ---


def _code_to_html(block: ContentBlock, syntax_highlight: bool) -> str:
    code = block.text
    if syntax_highlight:
        return highlight_code(code, block.language)
    lang_class = ""
    if block.language and block.language != PLAIN_TEXT_LANGUAGE:
        lang_class = f' class="language-{escape(block.language)}"'
    return f"<pre><code{lang_class}>{escape(code)}</code></pre>"


def block_to_html(block: ContentBlock, syntax_highlight: bool = True) -> str:
    t = block.type
    if t == BlockType.HEADING:
        return f"<h{block.level}>{runs_to_html(block.runs)}</h{block.level}>"
    if t == BlockType.CODE:
        return _code_to_html(block, syntax_highlight)
    if t == BlockType.QUOTE:
        return f"<blockquote>{runs_to_html(block.runs)}</blockquote>"
    if t == BlockType.EQUATION:
        return f'<div class="math-display">\\[{escape(block.expression)}\\]</div>'
    if t == BlockType.DIVIDER:
        return "<hr>"
    if t in LIST_TYPES:
        nested = blocks_to_html(block.children, syntax_highlight) if block.children else ""
        return f"<li>{runs_to_html(block.runs)}{nested}</li>"
    return f"<p>{runs_to_html(block.runs)}</p>"


def blocks_to_html(blocks: list[ContentBlock], syntax_highlight: bool = True) -> str:
    """Serialise blocks, wrapping consecutive list items of one type in ul/ol."""
    out: list[str] = []
    open_list: BlockType | None = None
    for block in blocks:
        if block.type != open_list and open_list is not None:
            out.append("</ol>" if open_list == BlockType.NUMBERED_ITEM else "</ul>")
            open_list = None
        if block.type in LIST_TYPES and open_list is None:
            out.append("<ol>" if block.type == BlockType.NUMBERED_ITEM else "<ul>")
            open_list = block.type
        out.append(block_to_html(block, syntax_highlight))
    if open_list is not None:
        out.append("</ol>" if open_list == BlockType.NUMBERED_ITEM else "</ul>")
    return "".join(out)


# --- Documents ---


def _message_context(document: Document, options: ExportOptions) -> list[dict]:
    entries = []
    for message in prepare_messages(document.messages, options):
        css = "msg-block"
        if message.role == Role.USER:
            css += " user"
        elif message.is_meta:
            css += " meta"
        entries.append({
            "css_class": css,
            "label": message.label,
            "body": Markup(blocks_to_html(message.blocks, options.syntax_highlight)),
        })
    return entries


def render_shell(
    template: str,
    document: Document,
    options: ExportOptions,
    app_name: str = DEFAULT_APP_NAME,
) -> str:
    tmpl = _env().get_template(template)
    return tmpl.render(
        title=document_title(document, options, app_name),
        lang=options.label_language.value,
        messages=_message_context(document, options),
        highlight_css=Markup(highlight_css()) if options.syntax_highlight else "",
    )


def render_html(document: Document, options: ExportOptions, app_name: str = DEFAULT_APP_NAME) -> str:
    """Standalone themed HTML document."""
    return render_shell("document.html.j2", document, options, app_name)


def render_word(document: Document, options: ExportOptions, app_name: str = DEFAULT_APP_NAME) -> str:
    """Office-flavoured HTML that Word opens as a document; starts with a BOM."""
    return BOM + render_shell("word.html.j2", document, options, app_name)


def render_print_html(document: Document, options: ExportOptions, app_name: str = DEFAULT_APP_NAME) -> str:
    """Print-oriented HTML handed to a PDF rasterizer."""
    return render_shell("pdf.html.j2", document, options, app_name)
