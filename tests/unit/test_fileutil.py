"""Tests for chatexport.core.fileutil."""

from pathlib import Path

from chatexport.core.fileutil import (
    FALLBACK_NAME,
    atomic_write_bytes,
    export_filename,
    filename_stamp,
    safe_filename,
    unique_path,
)
from chatexport.core.models import DateStampMode, ExportOptions


class TestSafeFilename:
    def test_basic(self):
        assert safe_filename("My Chat") == "My_Chat"

    def test_turkish_letters(self):
        assert safe_filename("Çalışma Günlüğü") == "Calisma_Gunlugu"

    def test_reserved_punctuation(self):
        assert safe_filename('a<b>c:d"e/f') == "a_b_c_d_e_f"

    def test_strips_control_and_bidi(self):
        assert safe_filename("abc\x00\u202edef") == "abcdef"

    def test_empty_falls_back(self):
        assert safe_filename("") == FALLBACK_NAME
        assert safe_filename("???") == FALLBACK_NAME

    def test_non_latin_dropped(self):
        assert safe_filename("日本語") == FALLBACK_NAME

    def test_reserved_device_name(self):
        assert safe_filename("CON") == "export_CON"

    def test_truncates(self):
        assert len(safe_filename("x" * 200)) == 80


class TestExportFilename:
    def test_without_stamp(self):
        assert export_filename("Demo", ExportOptions(), "md") == "Demo.md"

    def test_with_filename_stamp(self):
        opts = ExportOptions(
            date_stamp_mode=DateStampMode.FILENAME, exported_at="2026-10-19T14:30:00",
        )
        assert export_filename("Demo", opts, "pdf") == "Demo_2026-10-19_14-30.pdf"

    def test_content_mode_leaves_name_alone(self):
        opts = ExportOptions(
            date_stamp_mode=DateStampMode.CONTENT, exported_at="2026-10-19T14:30:00",
        )
        assert export_filename("Demo", opts, "txt") == "Demo.txt"

    def test_bad_stamp(self):
        assert filename_stamp("not a date") == ""


class TestAtomicWrite:
    def test_write(self, tmp_path: Path):
        target = tmp_path / "sub" / "out.bin"
        atomic_write_bytes(target, b"data")
        assert target.read_bytes() == b"data"
        assert not list(target.parent.glob(".tmp_*"))

    def test_overwrite(self, tmp_path: Path):
        target = tmp_path / "out.bin"
        atomic_write_bytes(target, b"one")
        atomic_write_bytes(target, b"two")
        assert target.read_bytes() == b"two"


class TestUniquePath:
    def test_free_name(self, tmp_path: Path):
        assert unique_path(tmp_path, "a.md") == tmp_path / "a.md"

    def test_numbered_suffix(self, tmp_path: Path):
        (tmp_path / "a.md").write_text("x")
        (tmp_path / "a (1).md").write_text("x")
        assert unique_path(tmp_path, "a.md") == tmp_path / "a (2).md"
