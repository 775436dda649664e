"""Tests for chatexport.export.delivery."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from chatexport.core.cache import BoundedCache
from chatexport.core.errors import UnsupportedFormat
from chatexport.core.models import (
    CanonicalMessage,
    ConversationDocument,
    DateStampMode,
    ExportOptions,
    LabelLanguage,
    Role,
)
from chatexport.export.delivery import (
    FORMATS,
    deliver_local,
    deliver_remote,
    format_spec,
    inline_document_images,
    render_clipboard_text,
    render_document,
)
from chatexport.providers.targets.base import TargetInfo, UploadResult
from chatexport.render.base import RenderedBlob


def _doc(title: str = "Demo") -> ConversationDocument:
    return ConversationDocument(title=title, messages=[
        CanonicalMessage(Role.USER, "<p>Hi</p>"),
        CanonicalMessage(Role.ASSISTANT, '<p>Hello <img src="https://x/a.png"></p>'),
    ])


class _FakeRasterizer:
    def rasterize(self, html: str) -> bytes:
        return b"%PDF-fake"


class _BlobTarget:
    def __init__(self):
        self.calls = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Fake", version="0", accepts_blobs=True)

    def upload(self, blob: RenderedBlob, filename: str) -> UploadResult:
        self.calls.append((blob, filename))
        return UploadResult(provider="Fake", url="https://fake/1")


class _PageTarget:
    def __init__(self):
        self.titles = []

    @property
    def name(self) -> str:
        return "pages"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Pages", version="0", accepts_blobs=False)

    def create_page(self, title, document, options) -> UploadResult:
        self.titles.append(title)
        return UploadResult(provider="Pages")


class TestRenderDocument:
    def test_formats_table(self):
        assert {k: v.extension for k, v in FORMATS.items()} == {
            "pdf": "pdf", "markdown": "md", "word": "doc", "html": "html", "txt": "txt",
        }

    def test_markdown_blob(self):
        blob = render_document("markdown", _doc(), ExportOptions(label_language=LabelLanguage.EN))
        assert blob.extension == "md"
        assert blob.mime_type == "text/markdown;charset=utf-8"
        assert blob.data.startswith(b"# Demo\n\n## User")
        assert blob.size == len(blob.data)

    def test_pdf_blob(self):
        blob = render_document("pdf", _doc(), ExportOptions(), rasterizer=_FakeRasterizer())
        assert blob.data == b"%PDF-fake"
        assert blob.mime_type == "application/pdf"

    def test_word_blob_has_bom(self):
        blob = render_document("word", _doc(), ExportOptions())
        assert blob.data.startswith("\ufeff".encode("utf-8"))
        assert blob.extension == "doc"

    def test_unknown_format(self):
        with pytest.raises(UnsupportedFormat):
            format_spec("rtf")

    def test_clipboard_text(self):
        opts = ExportOptions(label_language=LabelLanguage.EN)
        assert render_clipboard_text("markdown", _doc(), opts).startswith("# Demo")
        assert render_clipboard_text("txt", _doc(), opts).startswith("Demo\n\n====")


class TestDeliverLocal:
    def test_writes_file(self, tmp_path: Path):
        blob = RenderedBlob(b"data", "text/plain", "txt")
        path = deliver_local(blob, "My Chat", ExportOptions(), tmp_path / "out")
        assert path == tmp_path / "out" / "My_Chat.txt"
        assert path.read_bytes() == b"data"

    def test_never_overwrites_by_default(self, tmp_path: Path):
        blob = RenderedBlob(b"data", "text/plain", "txt")
        first = deliver_local(blob, "Demo", ExportOptions(), tmp_path)
        second = deliver_local(blob, "Demo", ExportOptions(), tmp_path)
        assert first.name == "Demo.txt"
        assert second.name == "Demo (1).txt"

    def test_overwrite(self, tmp_path: Path):
        deliver_local(RenderedBlob(b"one", "text/plain", "txt"), "Demo", ExportOptions(), tmp_path)
        path = deliver_local(RenderedBlob(b"two", "text/plain", "txt"), "Demo", ExportOptions(), tmp_path,
                             overwrite=True)
        assert path.read_bytes() == b"two"

    def test_filename_stamp(self, tmp_path: Path):
        opts = ExportOptions(date_stamp_mode=DateStampMode.FILENAME, exported_at="2026-10-19T14:30:00")
        path = deliver_local(RenderedBlob(b"x", "text/plain", "md"), "Demo", opts, tmp_path)
        assert path.name == "Demo_2026-10-19_14-30.md"


class TestDeliverRemote:
    def test_blob_target(self):
        target = _BlobTarget()
        result = deliver_remote(target, "txt", _doc(), ExportOptions())
        assert result.url == "https://fake/1"
        blob, filename = target.calls[0]
        assert filename == "Demo.txt"
        assert blob.data.startswith(b"Demo")

    def test_page_target_gets_document(self):
        target = _PageTarget()
        result = deliver_remote(target, "markdown", _doc(), ExportOptions())
        assert result.provider == "Pages"
        assert target.titles == ["Demo"]

    def test_page_target_fallback_title(self):
        target = _PageTarget()
        deliver_remote(target, "markdown", _doc(title=""), ExportOptions(), app_name="Gemini")
        assert target.titles == ["Gemini Export"]

    def test_rejects_unknown_target(self):
        with pytest.raises(UnsupportedFormat):
            deliver_remote(object(), "txt", _doc(), ExportOptions())


class TestInlineDocumentImages:
    def test_images_inlined(self):
        resp = MagicMock()
        resp.content = b"abc"
        resp.headers = {"content-type": "image/png"}
        client = MagicMock()
        client.get.return_value = resp
        client.__enter__.return_value = client

        with patch("httpx.Client", return_value=client):
            doc = inline_document_images(_doc(), BoundedCache(10))

        assert "data:image/png;base64,YWJj" in doc.messages[1].html
        assert doc.messages[0].html == "<p>Hi</p>"
        assert doc.messages[1].role == Role.ASSISTANT
