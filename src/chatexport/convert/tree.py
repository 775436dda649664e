"""Neutral parsed-tree representation of captured HTML fragments.

BeautifulSoup does the parsing; the result is copied into plain
``Element``/``Text`` nodes so the converters can dispatch on tag names
without probing parser-specific properties.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

log = logging.getLogger(__name__)

ROOT_TAG = "#root"

# Removed wholesale, content included
STRIP_TAGS = frozenset({
    "script", "style", "svg", "noscript", "iframe", "template", "object", "embed",
    "button", "input", "textarea", "select",
})

# Elements that count as "rich" content even without text
MEDIA_TAGS = frozenset({
    "img", "picture", "video", "canvas", "math", "table", "pre", "code",
    "ul", "ol", "li", "blockquote", "p",
})

# Site chrome: loaders, skeletons and pinned/overlay wrappers
_CHROME_CLASS_RE = re.compile(
    r"(?:^|[-_:])(loading|loader|spinner|skeleton|sticky|fixed|overlay|"
    r"min-h-screen|h-screen)(?:$|[-_])",
)
_CHROME_STYLE_RE = re.compile(r"position\s*:\s*(fixed|sticky)", re.IGNORECASE)

# class prefixes worth keeping on code blocks
_KEEP_CLASS_RE = re.compile(r"^(language-|lang-)")

# Math library markers (KaTeX, MathJax)
_MATH_CLASS_RE = re.compile(r"katex|mathjax|mjx|math-display")


@dataclass
class Text:
    value: str


@dataclass
class Element:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)

    @property
    def classes(self) -> list[str]:
        return self.attrs.get("class", "").split()

    @property
    def class_text(self) -> str:
        return self.attrs.get("class", "").lower()

    def get(self, name: str, default: str = "") -> str:
        return self.attrs.get(name, default)

    def text_content(self) -> str:
        return "".join(node.value for node in iter_text(self))

    def elements(self) -> list[Element]:
        """Direct element children."""
        return [c for c in self.children if isinstance(c, Element)]

    def find(self, predicate: Callable[[Element], bool]) -> Element | None:
        """First descendant element (document order) matching predicate."""
        for node in iter_elements(self):
            if predicate(node):
                return node
        return None


Node = Union[Element, Text]


def iter_elements(root: Element) -> Iterator[Element]:
    """Descendant elements of root in document order (root excluded)."""
    stack = list(reversed(root.children))
    while stack:
        node = stack.pop()
        if isinstance(node, Element):
            yield node
            stack.extend(reversed(node.children))


def iter_text(root: Element) -> Iterator[Text]:
    stack = list(reversed(root.children))
    while stack:
        node = stack.pop()
        if isinstance(node, Text):
            yield node
        else:
            stack.extend(reversed(node.children))


# --- Parsing ---


def _from_soup(tag: Tag) -> Element:
    attrs: dict[str, str] = {}
    for key, value in tag.attrs.items():
        attrs[key] = " ".join(value) if isinstance(value, list) else str(value)

    element = Element(tag=(tag.name or "").lower(), attrs=attrs)
    for child in tag.children:
        if isinstance(child, Tag):
            element.children.append(_from_soup(child))
        elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
            element.children.append(Text(str(child)))
    return element


def parse_fragment(html: str) -> Element:
    """Parse an HTML fragment into a neutral tree under a synthetic root."""
    soup = BeautifulSoup(html or "", "html.parser")
    root = _from_soup(soup)
    root.tag = ROOT_TAG
    root.attrs = {}
    return root


# --- Sanitation ---


def has_visible_content(element: Element) -> bool:
    """True when the element carries non-blank text or rich media."""
    if element.text_content().strip():
        return True
    return element.find(lambda el: el.tag in MEDIA_TAGS) is not None


def is_chrome(element: Element) -> bool:
    if any(_CHROME_CLASS_RE.search(token) for token in element.class_text.split()):
        return True
    return bool(_CHROME_STYLE_RE.search(element.get("style")))


def is_math_class(token: str) -> bool:
    return bool(_MATH_CLASS_RE.search(token.lower()))


def is_math_script(element: Element) -> bool:
    return element.tag == "script" and element.get("type").lower().startswith("math/tex")


def _is_hidden(element: Element) -> bool:
    return "hidden" in element.attrs or element.get("aria-hidden").lower() == "true"


def _is_stylesheet_link(element: Element) -> bool:
    return element.tag == "link" and "stylesheet" in element.get("rel").lower()


def sanitize(element: Element) -> Element:
    """Return a copy with scripts, styles, hidden nodes and site chrome removed.

    Class and style attributes are dropped, except language markers on
    code blocks and math-library markers the converters rely on.
    """
    clean = Element(tag=element.tag, attrs=_clean_attrs(element))
    for child in element.children:
        if isinstance(child, Text):
            clean.children.append(Text(child.value))
            continue
        if child.tag in STRIP_TAGS and not is_math_script(child):
            continue
        if _is_hidden(child) or _is_stylesheet_link(child):
            continue
        if is_chrome(child) and not has_visible_content(child):
            log.debug("Dropping empty chrome element <%s class=%r>", child.tag, child.get("class"))
            continue
        clean.children.append(sanitize(child))
    return clean


def _clean_attrs(element: Element) -> dict[str, str]:
    attrs = {k: v for k, v in element.attrs.items() if k not in ("class", "style", "hidden")}
    kept = [
        c for c in element.classes
        if (element.tag in ("pre", "code") and _KEEP_CLASS_RE.match(c)) or is_math_class(c)
    ]
    if kept:
        attrs["class"] = " ".join(kept)
    return attrs


def parse_clean(html: str) -> Element:
    """Parse and sanitize in one step."""
    return sanitize(parse_fragment(html))
