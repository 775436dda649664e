"""Delivery: render a document into a format and hand it to a file or remote target."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from chatexport.core.cache import BoundedCache
from chatexport.core.errors import UnsupportedFormat
from chatexport.core.fileutil import atomic_write_bytes, ensure_dir, export_filename, unique_path
from chatexport.core.images import inline_images
from chatexport.core.models import ExportOptions
from chatexport.providers.targets.base import PageTarget, UploadResult, UploadTarget
from chatexport.render import html as html_render
from chatexport.render import markdown as markdown_render
from chatexport.render import pdf as pdf_render
from chatexport.render import text as text_render
from chatexport.render.base import DEFAULT_APP_NAME, Document, RenderedBlob
from chatexport.render.pdf import PdfRasterizer

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormatSpec:
    extension: str
    mime_type: str


FORMATS: dict[str, FormatSpec] = {
    "pdf": FormatSpec("pdf", pdf_render.MIME_TYPE),
    "markdown": FormatSpec("md", markdown_render.MIME_TYPE),
    "word": FormatSpec("doc", html_render.WORD_MIME_TYPE),
    "html": FormatSpec("html", html_render.HTML_MIME_TYPE),
    "txt": FormatSpec("txt", text_render.MIME_TYPE),
}


def format_spec(fmt: str) -> FormatSpec:
    spec = FORMATS.get(fmt)
    if spec is None:
        raise UnsupportedFormat(f"Unsupported format: {fmt!r} (choose from {', '.join(FORMATS)})")
    return spec


def render_document(
    fmt: str,
    document: Document,
    options: ExportOptions,
    rasterizer: PdfRasterizer | None = None,
    app_name: str = DEFAULT_APP_NAME,
) -> RenderedBlob:
    """Render one document into the bytes of the requested format."""
    spec = format_spec(fmt)
    if fmt == "pdf":
        data = pdf_render.render_pdf(document, options, rasterizer, app_name)
    elif fmt == "markdown":
        data = markdown_render.render_markdown(document, options, app_name).encode("utf-8")
    elif fmt == "word":
        data = html_render.render_word(document, options, app_name).encode("utf-8")
    elif fmt == "html":
        data = html_render.render_html(document, options, app_name).encode("utf-8")
    else:
        data = text_render.render_text(document, options, app_name).encode("utf-8")
    return RenderedBlob(data=data, mime_type=spec.mime_type, extension=spec.extension)


def render_clipboard_text(fmt: str, document: Document, options: ExportOptions,
                          app_name: str = DEFAULT_APP_NAME) -> str:
    """Text for copy/paste: Markdown for 'markdown', plain text otherwise."""
    if fmt == "markdown":
        return markdown_render.render_markdown(document, options, app_name)
    return text_render.render_text(document, options, app_name)


def inline_document_images(document: Document, cache: BoundedCache[str, str]) -> Document:
    """Copy of the document with every remote image turned into a data URI."""
    import httpx

    with httpx.Client(timeout=15.0) as client:
        messages = [
            type(m)(role=m.role, html=inline_images(m.html, cache, client), timestamp=m.timestamp)
            for m in document.messages
        ]
    return document.with_messages(messages)


def deliver_local(
    blob: RenderedBlob,
    title: str,
    options: ExportOptions,
    output_dir: Path,
    overwrite: bool = False,
) -> Path:
    """Write the blob under a sanitised filename; returns the written path."""
    ensure_dir(output_dir)
    filename = export_filename(title, options, blob.extension)
    path = output_dir / filename if overwrite else unique_path(output_dir, filename)
    atomic_write_bytes(path, blob.data)
    log.info("Wrote %s (%d bytes)", path, blob.size)
    return path


def deliver_remote(
    target: UploadTarget | PageTarget,
    fmt: str,
    document: Document,
    options: ExportOptions,
    rasterizer: PdfRasterizer | None = None,
    app_name: str = DEFAULT_APP_NAME,
) -> UploadResult:
    """Send a document to a remote target.

    Page targets build their own payload from the document; blob targets
    receive the rendered file.
    """
    if isinstance(target, PageTarget) and not target.info.accepts_blobs:
        title = document.title or f"{app_name} Export"
        return target.create_page(title, document, options)
    if not isinstance(target, UploadTarget):
        raise UnsupportedFormat(f"Target {getattr(target, 'name', target)!r} cannot receive files")
    blob = render_document(fmt, document, options, rasterizer, app_name)
    filename = export_filename(document.title, options, blob.extension)
    return target.upload(blob, filename)
