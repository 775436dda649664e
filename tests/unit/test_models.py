"""Tests for chatexport.core.models."""

from datetime import date

from chatexport.core.models import (
    Annotations,
    BlockType,
    CanonicalMessage,
    ContentBlock,
    ConversationDocument,
    DateStampMode,
    ExportOptions,
    LabelLanguage,
    MessageFilter,
    RichTextRun,
    Role,
    RunKind,
    is_message_included,
    parse_iso,
)


class TestCanonicalMessage:
    def test_from_dict(self):
        msg = CanonicalMessage.from_dict(
            {"role": "user", "html": "<p>Hi</p>", "timestamp": "2026-01-01T10:00:00Z"}
        )
        assert msg.role == Role.USER
        assert msg.html == "<p>Hi</p>"
        assert msg.timestamp == "2026-01-01T10:00:00Z"

    def test_unknown_role_becomes_assistant(self):
        assert CanonicalMessage.from_dict({"role": "model", "html": "x"}).role == Role.ASSISTANT
        assert CanonicalMessage.from_dict({"html": "x"}).role == Role.ASSISTANT

    def test_human_is_user(self):
        assert CanonicalMessage.from_dict({"role": "Human", "html": "x"}).role == Role.USER

    def test_to_dict_omits_missing_timestamp(self):
        msg = CanonicalMessage(role=Role.META, html="<h2>1. A</h2>")
        assert msg.to_dict() == {"role": "meta", "html": "<h2>1. A</h2>"}


class TestConversationDocument:
    def test_round_trip(self):
        data = {
            "title": "Demo",
            "sourceUrl": "https://chat.example.com/c/1",
            "messages": [{"role": "user", "html": "<p>Hi</p>"}],
        }
        doc = ConversationDocument.from_dict(data)
        assert doc.title == "Demo"
        assert doc.source_url == "https://chat.example.com/c/1"
        assert doc.to_dict() == data

    def test_skips_non_dict_messages(self):
        doc = ConversationDocument.from_dict({"messages": ["junk", {"role": "user", "html": "x"}]})
        assert len(doc.messages) == 1

    def test_with_messages_copies(self):
        doc = ConversationDocument(title="T", messages=[CanonicalMessage(Role.USER, "a")])
        other = doc.with_messages([])
        assert other.messages == []
        assert len(doc.messages) == 1
        assert other.title == "T"


class TestAnnotations:
    def test_merge_ors_flags(self):
        ann = Annotations(bold=True).merge(italic=True)
        assert ann.bold and ann.italic
        assert not ann.code

    def test_merge_never_clears(self):
        assert Annotations(bold=True).merge(bold=False).bold is True


class TestContentBlock:
    def test_text_skips_images(self):
        block = ContentBlock(BlockType.PARAGRAPH, runs=[
            RichTextRun(RunKind.TEXT, "See "),
            RichTextRun(RunKind.IMAGE, "https://x/a.png"),
            RichTextRun(RunKind.EQUATION, "x^2"),
        ])
        assert block.text == "See x^2"


class TestExportOptions:
    def test_defaults(self):
        opts = ExportOptions()
        assert opts.message_filter == MessageFilter.ALL
        assert opts.label_language == LabelLanguage.TR
        assert opts.date_stamp_mode == DateStampMode.NONE
        assert opts.syntax_highlight is True

    def test_from_dict_camel_case(self):
        opts = ExportOptions.from_dict({
            "messageFilter": "user",
            "labelLanguage": "en",
            "dateStampMode": "both",
            "dateRangeStart": "2026-01-01",
            "dateRangeEnd": "2026-01-31T23:00:00",
            "syntaxHighlight": False,
        })
        assert opts.message_filter == MessageFilter.USER
        assert opts.label_language == LabelLanguage.EN
        assert opts.date_stamp_mode == DateStampMode.BOTH
        assert opts.date_range_start == date(2026, 1, 1)
        assert opts.date_range_end == date(2026, 1, 31)
        assert opts.syntax_highlight is False

    def test_from_dict_string_booleans(self):
        assert ExportOptions.from_dict({"syntax_highlight": "false"}).syntax_highlight is False
        assert ExportOptions.from_dict({"syntaxHighlight": " No "}).syntax_highlight is False
        assert ExportOptions.from_dict({"syntax_highlight": "0"}).syntax_highlight is False
        assert ExportOptions.from_dict({"syntax_highlight": "true"}).syntax_highlight is True
        assert ExportOptions.from_dict({"syntax_highlight": ""}).syntax_highlight is True
        assert ExportOptions.from_dict({"syntax_highlight": 0}).syntax_highlight is False

    def test_from_dict_unknown_values_fall_back(self):
        opts = ExportOptions.from_dict({"message_filter": "bots", "label_language": "de"})
        assert opts.message_filter == MessageFilter.ALL
        assert opts.label_language == LabelLanguage.TR

    def test_from_dict_none(self):
        assert ExportOptions.from_dict(None).message_filter == MessageFilter.ALL


class TestIsMessageIncluded:
    def test_all(self):
        assert is_message_included(Role.USER, MessageFilter.ALL)
        assert is_message_included(Role.ASSISTANT, MessageFilter.ALL)

    def test_role_filter(self):
        assert is_message_included(Role.USER, MessageFilter.USER)
        assert not is_message_included(Role.ASSISTANT, MessageFilter.USER)
        assert not is_message_included(Role.USER, MessageFilter.ASSISTANT)

    def test_meta_always_kept(self):
        assert is_message_included(Role.META, MessageFilter.USER)
        assert is_message_included(Role.META, MessageFilter.ASSISTANT)


class TestParseIso:
    def test_zulu(self):
        dt = parse_iso("2026-01-01T10:00:00Z")
        assert dt is not None and dt.utcoffset().total_seconds() == 0

    def test_invalid(self):
        assert parse_iso("yesterday") is None
        assert parse_iso(None) is None
