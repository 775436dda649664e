"""PDF hand-off: print HTML in, PDF bytes out.

Rasterization is delegated to a ``PdfRasterizer``. The bundled
implementation drives headless Chromium through Playwright.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from chatexport.core.errors import ExtractionEmpty
from chatexport.core.models import ExportOptions
from chatexport.render.base import DEFAULT_APP_NAME, Document, prepare_messages
from chatexport.render.html import render_print_html

log = logging.getLogger(__name__)

MIME_TYPE = "application/pdf"


@runtime_checkable
class PdfRasterizer(Protocol):
    """Turns a complete HTML document into PDF bytes."""

    def rasterize(self, html: str) -> bytes: ...


class PlaywrightRasterizer:
    """Print HTML to an A4 PDF with headless Chromium."""

    def __init__(self, page_format: str = "A4", timeout_ms: int = 20_000) -> None:
        self._page_format = page_format
        self._timeout_ms = timeout_ms

    def rasterize(self, html: str) -> bytes:
        try:
            from playwright.sync_api import sync_playwright
        except ImportError as err:
            raise ImportError(
                "Playwright is not installed.\n"
                "Run: pip install chatexport[browser] && playwright install chromium"
            ) from err

        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=True)
            try:
                page = browser.new_page()
                page.set_content(html, wait_until="load", timeout=self._timeout_ms)
                data = page.pdf(format=self._page_format, print_background=True)
            finally:
                browser.close()
        log.debug("Rasterized %d bytes of HTML into %d bytes of PDF", len(html), len(data))
        return data


def render_pdf(
    document: Document,
    options: ExportOptions,
    rasterizer: PdfRasterizer | None = None,
    app_name: str = DEFAULT_APP_NAME,
) -> bytes:
    """Render the print shell and rasterize it.

    Raises:
        ExtractionEmpty: when no message has visible content.
    """
    if not prepare_messages(document.messages, options):
        raise ExtractionEmpty("nothing to print: no message has visible content")
    html = render_print_html(document, options, app_name)
    return (rasterizer or PlaywrightRasterizer()).rasterize(html)
