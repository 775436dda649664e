"""Core data models for chatexport."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum


# --- Enums ---


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    META = "meta"


class MessageFilter(str, Enum):
    ALL = "all"
    USER = "user"
    ASSISTANT = "assistant"


class LabelLanguage(str, Enum):
    TR = "tr"
    EN = "en"


class DateStampMode(str, Enum):
    NONE = "none"
    FILENAME = "filename"
    CONTENT = "content"
    BOTH = "both"


class RunKind(str, Enum):
    TEXT = "text"
    EQUATION = "equation"
    IMAGE = "image"


class BlockType(str, Enum):
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BULLETED_ITEM = "bulleted_list_item"
    NUMBERED_ITEM = "numbered_list_item"
    CODE = "code"
    QUOTE = "quote"
    EQUATION = "equation"
    DIVIDER = "divider"


LIST_TYPES = (BlockType.BULLETED_ITEM, BlockType.NUMBERED_ITEM)


# --- Helpers ---


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value) -> datetime | None:
    """Parse an ISO-8601 string; returns None for missing or malformed input."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _coerce_role(value) -> Role:
    """Map scraped role strings onto the canonical roles.

    Anything that is not explicitly 'user' or 'meta' is an assistant turn.
    """
    raw = str(value.value if isinstance(value, Role) else value or "").strip().lower()
    if raw in ("user", "human"):
        return Role.USER
    if raw == "meta":
        return Role.META
    return Role.ASSISTANT


def _coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def _coerce_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().lower()
        return value not in _FALSE_STRINGS if value else default
    return bool(value)


def _coerce_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


# --- Message model ---


@dataclass(frozen=True)
class CanonicalMessage:
    """One scraped chat turn: role, HTML fragment and optional timestamp."""

    role: Role
    html: str
    timestamp: str | None = None  # ISO-8601

    @classmethod
    def from_dict(cls, data: dict) -> CanonicalMessage:
        return cls(
            role=_coerce_role(data.get("role")),
            html=str(data.get("html") or ""),
            timestamp=data.get("timestamp") or None,
        )

    def to_dict(self) -> dict:
        out = {"role": self.role.value, "html": self.html}
        if self.timestamp:
            out["timestamp"] = self.timestamp
        return out


@dataclass
class ConversationDocument:
    """A single captured conversation."""

    title: str = ""
    messages: list[CanonicalMessage] = field(default_factory=list)
    source_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ConversationDocument:
        return cls(
            title=str(data.get("title") or ""),
            messages=[CanonicalMessage.from_dict(m) for m in data.get("messages") or []
                      if isinstance(m, dict)],
            source_url=data.get("sourceUrl") or data.get("source_url") or None,
        )

    def to_dict(self) -> dict:
        out = {"title": self.title, "messages": [m.to_dict() for m in self.messages]}
        if self.source_url:
            out["sourceUrl"] = self.source_url
        return out

    def with_messages(self, messages: list[CanonicalMessage]) -> ConversationDocument:
        return replace(self, messages=list(messages))


@dataclass
class MergedExportDocument:
    """Several conversations flattened into one document with meta separators."""

    title: str = ""
    messages: list[CanonicalMessage] = field(default_factory=list)
    source_url: str | None = None

    def with_messages(self, messages: list[CanonicalMessage]) -> MergedExportDocument:
        return replace(self, messages=list(messages))


# --- Block model ---


@dataclass(frozen=True)
class Annotations:
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    code: bool = False

    def merge(self, **patch: bool) -> Annotations:
        """OR the given flags into a copy of these annotations."""
        values = {name: getattr(self, name) or bool(patch.get(name)) for name in _ANNOTATION_NAMES}
        return Annotations(**values)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in _ANNOTATION_NAMES}


_ANNOTATION_NAMES = ("bold", "italic", "underline", "strikethrough", "code")
PLAIN = Annotations()


@dataclass(frozen=True)
class RichTextRun:
    """A contiguous span of text (or an inline equation/image) with fixed styling.

    For IMAGE runs ``content`` holds the image source.
    """

    kind: RunKind
    content: str
    annotations: Annotations = PLAIN
    link: str | None = None

    @property
    def key(self) -> tuple:
        return (self.kind, self.annotations, self.link)


@dataclass
class ContentBlock:
    """One structural unit of a message.

    ``runs`` is empty for DIVIDER and EQUATION blocks. ``children`` is only
    used by list items.
    """

    type: BlockType
    runs: list[RichTextRun] = field(default_factory=list)
    level: int = 0  # headings: 2 or 3
    language: str = ""  # code blocks
    expression: str = ""  # equation blocks
    children: list[ContentBlock] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated plain text of the block's runs."""
        return "".join(r.content for r in self.runs if r.kind != RunKind.IMAGE)


# --- Options ---


@dataclass
class ExportOptions:
    """Recognised export options."""

    message_filter: MessageFilter = MessageFilter.ALL
    label_language: LabelLanguage = LabelLanguage.TR
    date_stamp_mode: DateStampMode = DateStampMode.NONE
    date_range_start: date | None = None
    date_range_end: date | None = None
    syntax_highlight: bool = True
    exported_at: str = field(default_factory=_now_iso)

    @classmethod
    def from_dict(cls, data: dict | None) -> ExportOptions:
        """Normalise a loose options mapping (camelCase or snake_case keys)."""
        data = data or {}

        def pick(snake: str, camel: str):
            return data.get(snake, data.get(camel))

        highlight = pick("syntax_highlight", "syntaxHighlight")
        return cls(
            message_filter=_coerce_enum(
                MessageFilter, pick("message_filter", "messageFilter"), MessageFilter.ALL,
            ),
            label_language=_coerce_enum(
                LabelLanguage, pick("label_language", "labelLanguage"), LabelLanguage.TR,
            ),
            date_stamp_mode=_coerce_enum(
                DateStampMode, pick("date_stamp_mode", "dateStampMode"), DateStampMode.NONE,
            ),
            date_range_start=_coerce_date(pick("date_range_start", "dateRangeStart")),
            date_range_end=_coerce_date(pick("date_range_end", "dateRangeEnd")),
            syntax_highlight=_coerce_bool(highlight, True),
            exported_at=pick("exported_at", "exportedAt") or _now_iso(),
        )


def is_message_included(role: Role, message_filter: MessageFilter) -> bool:
    """Role filter: meta messages are always kept."""
    if role == Role.META or message_filter == MessageFilter.ALL:
        return True
    return role.value == MessageFilter(message_filter).value
