"""Code-block syntax highlighting with Pygments."""

from __future__ import annotations

import logging

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

log = logging.getLogger(__name__)

CSS_CLASS = "highlight"

# Block languages whose names Pygments spells differently
_LEXER_NAMES = {
    "c#": "csharp",
    "c++": "cpp",
    "f#": "fsharp",
    "vb.net": "vbnet",
    "visual basic": "vbnet",
    "markup": "html",
    "java/c/c++/c#": "java",
    "objective-c": "objective-c",
    "docker": "docker",
    "shell": "bash",
    "webassembly": "wast",
}


def lexer_for(language: str) -> Lexer:
    """Pygments lexer for a block language, plain text when unknown."""
    name = _LEXER_NAMES.get(language, language)
    if not name or name == "plain text":
        return TextLexer(stripall=False)
    try:
        return get_lexer_by_name(name, stripall=False)
    except ClassNotFound:
        log.debug("No Pygments lexer for %r, using plain text", language)
        return TextLexer(stripall=False)


def highlight_code(code: str, language: str) -> str:
    """Highlighted ``<div class="highlight"><pre>…</pre></div>`` markup."""
    formatter = HtmlFormatter(nowrap=False, cssclass=CSS_CLASS)
    return highlight(code, lexer_for(language), formatter)


def highlight_css() -> str:
    return HtmlFormatter(nowrap=False).get_style_defs(f".{CSS_CLASS}")
