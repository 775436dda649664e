"""Math detection and LaTeX source extraction for KaTeX/MathJax/MathML output."""

from __future__ import annotations

from chatexport.convert.tree import Element, is_math_script

_LATEX_ATTRS = ("data-tex", "data-latex", "data-math")
_MATH_MARKERS = ("katex", "mathjax", "mjx")
_DISPLAY_MARKERS = ("katex-display", "math-display")


def is_math(element: Element) -> bool:
    """True for a math-library wrapper, a <math> element or a math/tex script."""
    if element.tag == "math" or element.tag.startswith("mjx-"):
        return True
    if is_math_script(element):
        return True
    cls = element.class_text
    return any(marker in cls for marker in _MATH_MARKERS)


def is_display_math(element: Element) -> bool:
    """True for math flagged as display (block) rather than inline."""
    if not is_math(element):
        return False
    cls = element.class_text
    if any(marker in cls for marker in _DISPLAY_MARKERS):
        return True
    if element.get("mode").lower() == "display":
        return True
    if element.get("display").lower() in ("block", "true"):
        return True
    return is_math_script(element) and "mode=display" in element.get("type").lower()


def extract_latex(element: Element) -> str:
    """Return the LaTeX source of a math element, or "" when none is encoded.

    Sources, in priority order: an explicit data attribute, a MathML
    <annotation> (TeX encoding preferred), a math/tex <script>, then a
    data attribute on a descendant.
    """
    for attr in _LATEX_ATTRS:
        value = element.get(attr).strip()
        if value:
            return value

    if is_math_script(element):
        return element.text_content().strip()

    annotation = element.find(
        lambda el: el.tag == "annotation" and el.get("encoding").lower() == "application/x-tex"
    ) or element.find(lambda el: el.tag == "annotation")
    if annotation is not None:
        text = annotation.text_content().strip()
        if text:
            return text

    script = element.find(is_math_script)
    if script is not None:
        text = script.text_content().strip()
        if text:
            return text

    # Display wrappers often carry the source on the inner renderer node
    holder = element.find(lambda el: any(el.get(attr).strip() for attr in _LATEX_ATTRS))
    if holder is not None:
        return extract_latex(holder)

    return ""
