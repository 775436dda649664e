"""Tests for chatexport.export.filters."""

from datetime import date

import pytest

from chatexport.core.errors import ExtractionEmpty
from chatexport.core.models import (
    CanonicalMessage,
    ConversationDocument,
    ExportOptions,
    MessageFilter,
    Role,
)
from chatexport.export.filters import (
    apply_filters,
    ensure_renderable,
    filter_by_date_range,
    filter_by_role,
)

T1 = "2026-01-01T10:00:00"
T2 = "2026-01-05T10:00:00"
T3 = "2026-02-01T10:00:00"


def _doc(*messages: CanonicalMessage) -> ConversationDocument:
    return ConversationDocument(title="Demo", messages=list(messages))


class TestFilterByRole:
    def test_user_only_keeps_meta(self):
        doc = _doc(
            CanonicalMessage(Role.META, "<h2>1. A</h2>"),
            CanonicalMessage(Role.USER, "<p>q</p>"),
            CanonicalMessage(Role.ASSISTANT, "<p>a</p>"),
        )
        kept = filter_by_role(doc, MessageFilter.USER)
        assert [m.role for m in kept.messages] == [Role.META, Role.USER]
        assert len(doc.messages) == 3

    def test_all(self):
        doc = _doc(CanonicalMessage(Role.USER, "q"), CanonicalMessage(Role.ASSISTANT, "a"))
        assert len(filter_by_role(doc, MessageFilter.ALL).messages) == 2


class TestFilterByDateRange:
    def test_excludes_outside_range(self):
        doc = _doc(
            CanonicalMessage(Role.USER, "<p>one</p>", T1),
            CanonicalMessage(Role.ASSISTANT, "<p>two</p>", T2),
            CanonicalMessage(Role.USER, "<p>three</p>", T3),
        )
        result = filter_by_date_range(doc, date(2026, 1, 1), date(2026, 1, 5))
        assert not result.skipped
        assert [m.timestamp for m in result.document.messages] == [T1, T2]

    def test_whole_days_inclusive(self):
        doc = _doc(CanonicalMessage(Role.USER, "<p>late</p>", "2026-01-05T23:59:00"))
        result = filter_by_date_range(doc, date(2026, 1, 5), date(2026, 1, 5))
        assert len(result.document.messages) == 1
        assert not result.skipped

    def test_open_ended(self):
        doc = _doc(
            CanonicalMessage(Role.USER, "<p>one</p>", T1),
            CanonicalMessage(Role.USER, "<p>three</p>", T3),
        )
        result = filter_by_date_range(doc, date(2026, 1, 10), None)
        assert [m.timestamp for m in result.document.messages] == [T3]

    def test_no_timestamps_skips(self):
        doc = _doc(CanonicalMessage(Role.USER, "<p>q</p>"), CanonicalMessage(Role.ASSISTANT, "<p>a</p>"))
        result = filter_by_date_range(doc, date(2026, 1, 1), date(2026, 1, 5))
        assert result.skipped
        assert result.document.messages == doc.messages

    def test_range_excluding_everything_skips(self):
        doc = _doc(CanonicalMessage(Role.USER, "<p>q</p>", T3))
        result = filter_by_date_range(doc, date(2026, 1, 1), date(2026, 1, 5))
        assert result.skipped
        assert result.document.messages == doc.messages

    def test_undated_messages_kept(self):
        doc = _doc(
            CanonicalMessage(Role.USER, "<p>dated</p>", T1),
            CanonicalMessage(Role.ASSISTANT, "<p>undated</p>"),
            CanonicalMessage(Role.USER, "<p>late</p>", T3),
        )
        result = filter_by_date_range(doc, date(2026, 1, 1), date(2026, 1, 5))
        assert [m.html for m in result.document.messages] == ["<p>dated</p>", "<p>undated</p>"]

    def test_no_range_is_noop(self):
        doc = _doc(CanonicalMessage(Role.USER, "<p>q</p>", T1))
        result = filter_by_date_range(doc, None, None)
        assert result.document is doc
        assert not result.skipped


class TestEnsureRenderable:
    def test_raises_on_empty(self):
        with pytest.raises(ExtractionEmpty, match="no usable message content"):
            ensure_renderable(_doc(CanonicalMessage(Role.USER, "<p>User</p>")))

    def test_meta_only_is_empty(self):
        with pytest.raises(ExtractionEmpty):
            ensure_renderable(_doc(CanonicalMessage(Role.META, "<h2>1. A</h2>")))

    def test_passes(self):
        doc = _doc(CanonicalMessage(Role.USER, "<p>question</p>"))
        assert ensure_renderable(doc) is doc


class TestApplyFilters:
    def test_role_then_date(self):
        doc = _doc(
            CanonicalMessage(Role.USER, "<p>one</p>", T1),
            CanonicalMessage(Role.ASSISTANT, "<p>two</p>", T2),
            CanonicalMessage(Role.USER, "<p>three</p>", T3),
        )
        opts = ExportOptions(
            message_filter=MessageFilter.USER,
            date_range_start=date(2026, 1, 1),
            date_range_end=date(2026, 1, 31),
        )
        result = apply_filters(doc, opts)
        assert [m.html for m in result.document.messages] == ["<p>one</p>"]

    def test_filter_leaving_nothing_raises(self):
        doc = _doc(CanonicalMessage(Role.ASSISTANT, "<p>a</p>"))
        with pytest.raises(ExtractionEmpty):
            apply_filters(doc, ExportOptions(message_filter=MessageFilter.USER))
