"""File system utilities: safe export names, date stamps, atomic writes."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
import unicodedata
from pathlib import Path

from chatexport.core.models import DateStampMode, ExportOptions, parse_iso

log = logging.getLogger(__name__)

FALLBACK_NAME = "chat_export"
MAX_NAME_LENGTH = 80

_TR_MAP = str.maketrans("çÇğĞıİöÖşŞüÜ", "cCgGiIoOsSuU")
_RESERVED_RE = re.compile(r"^(con|prn|aux|nul|com[1-9]|lpt[1-9])$", re.IGNORECASE)


def safe_filename(title: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Convert a title to an ASCII-safe export base name.

    Transliterates Turkish letters, strips diacritics, control and
    bidi characters, replaces OS-reserved punctuation and avoids
    reserved device names.
    """
    name = str(title or "").strip()
    if not name:
        return FALLBACK_NAME
    name = name.translate(_TR_MAP)
    name = unicodedata.normalize("NFKD", name)
    name = "".join(c for c in name if not unicodedata.combining(c))
    # Control characters (C0 and C1)
    name = re.sub(r"[\x00-\x1f\x80-\x9f]", "", name)
    name = re.sub(r'[<>:"/\\|?*]', "_", name)
    name = re.sub(r"[\u200b-\u200f\u202a-\u202e\u2066-\u2069]", "", name)
    # Whatever is left outside printable ASCII is dropped, not replaced
    name = re.sub(r"[^\x20-\x7e]", "", name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"_+", "_", name)
    name = re.sub(r"^[_. ]+|[_. ]+$", "", name)

    if len(name) < 2:
        name = FALLBACK_NAME
    if _RESERVED_RE.match(name):
        name = f"export_{name}"
    return name[:max_length]


def filename_stamp(iso: str | None) -> str:
    """Format an ISO timestamp as YYYY-MM-DD_HH-MM in local time."""
    dt = parse_iso(iso)
    if dt is None:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%Y-%m-%d_%H-%M")


def export_basename(title: str, options: ExportOptions) -> str:
    """Safe base name, suffixed with a date stamp when the options ask for it."""
    base = safe_filename(title)
    if options.date_stamp_mode not in (DateStampMode.FILENAME, DateStampMode.BOTH):
        return base
    stamp = filename_stamp(options.exported_at)
    return f"{base}_{stamp}" if stamp else base


def export_filename(title: str, options: ExportOptions, extension: str) -> str:
    return f"{export_basename(title, options)}.{extension}"


def ensure_dir(path: Path) -> Path:
    """Create directory if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes to file atomically via temp file + rename.

    The target is never left partially written.
    """
    ensure_dir(path.parent)

    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=path.suffix,
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
    log.debug("Wrote %d bytes to %s", len(content), path)


def unique_path(directory: Path, filename: str) -> Path:
    """Return directory/filename, adding a numeric suffix if it already exists."""
    candidate = directory / filename
    if not candidate.exists():
        return candidate
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while True:
        candidate = directory / f"{stem} ({counter}){suffix}"
        if not candidate.exists():
            return candidate
        counter += 1
