"""Message filters applied after collection and before rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from chatexport.convert.roles import has_renderable_content
from chatexport.core.errors import DateFilterNoMatch, ExtractionEmpty
from chatexport.core.models import (
    CanonicalMessage,
    ExportOptions,
    MessageFilter,
    Role,
    is_message_included,
    parse_iso,
)
from chatexport.render.base import Document

log = logging.getLogger(__name__)


@dataclass
class DateFilterResult:
    document: Document
    skipped: bool = False


def filter_by_role(document: Document, message_filter: MessageFilter) -> Document:
    """Keep messages of the selected role; meta messages always survive."""
    kept = [m for m in document.messages if is_message_included(m.role, message_filter)]
    return document.with_messages(kept)


def _boundary(day: date | None, end: bool) -> datetime | None:
    if day is None:
        return None
    # Whole local days, inclusive at both ends
    return datetime.combine(day, time.max if end else time.min).astimezone()


def _message_time(message: CanonicalMessage) -> datetime | None:
    dt = parse_iso(message.timestamp)
    return dt.astimezone() if dt is not None else None


def _apply_range(
    messages: list[CanonicalMessage],
    start: datetime | None,
    end: datetime | None,
) -> list[CanonicalMessage]:
    if not any(m.role != Role.META and _message_time(m) for m in messages):
        raise DateFilterNoMatch("no message carries a timestamp")

    kept: list[CanonicalMessage] = []
    for message in messages:
        ts = _message_time(message) if message.role != Role.META else None
        if ts is not None and ((start and ts < start) or (end and ts > end)):
            continue
        kept.append(message)

    if not any(m.role != Role.META for m in kept):
        raise DateFilterNoMatch("the date range excludes every message")
    return kept


def filter_by_date_range(
    document: Document,
    start: date | None,
    end: date | None,
) -> DateFilterResult:
    """Narrow to messages inside the inclusive ``[start, end]`` day range.

    Undated messages are kept. When no message has a timestamp, or the
    range would leave no non-meta message, the document is returned
    unchanged with ``skipped`` set.
    """
    if start is None and end is None:
        return DateFilterResult(document)

    try:
        kept = _apply_range(document.messages, _boundary(start, False), _boundary(end, True))
    except DateFilterNoMatch as e:
        log.warning("Date range filter skipped: %s", e)
        return DateFilterResult(document, skipped=True)
    return DateFilterResult(document.with_messages(kept))


def ensure_renderable(document: Document) -> Document:
    """Raise ExtractionEmpty unless some non-meta message has visible content."""
    if not any(has_renderable_content(m) for m in document.messages):
        raise ExtractionEmpty("no usable message content")
    return document


def apply_filters(document: Document, options: ExportOptions) -> DateFilterResult:
    """Role filter, then date range, then the emptiness check."""
    filtered = filter_by_role(document, options.message_filter)
    result = filter_by_date_range(filtered, options.date_range_start, options.date_range_end)
    ensure_renderable(result.document)
    return result
