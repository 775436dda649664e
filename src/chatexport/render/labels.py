"""Localised labels, titles and date stamps shared by all renderers."""

from __future__ import annotations

from chatexport.core.models import DateStampMode, ExportOptions, LabelLanguage, Role, parse_iso

_ROLE_LABELS = {
    LabelLanguage.TR: {Role.USER: "Kullanici", Role.ASSISTANT: "Asistan"},
    LabelLanguage.EN: {Role.USER: "User", Role.ASSISTANT: "Assistant"},
}

_MONTHS = {
    LabelLanguage.TR: (
        "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
        "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
    ),
    LabelLanguage.EN: (
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
}


def role_label(role: Role, language: LabelLanguage = LabelLanguage.TR) -> str | None:
    """Caption shown above a message; meta messages are never labelled."""
    if role == Role.META:
        return None
    return _ROLE_LABELS[LabelLanguage(language)][Role(role)]


def format_stamp_human(iso: str | None, language: LabelLanguage = LabelLanguage.TR) -> str:
    """Long human-readable date, e.g. '19 Ekim 2026 14:30' or 'October 19, 2026 at 02:30 PM'."""
    dt = parse_iso(iso)
    if dt is None:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    language = LabelLanguage(language)
    month = _MONTHS[language][dt.month - 1]
    if language == LabelLanguage.EN:
        return f"{month} {dt.day:02d}, {dt.year} at {dt.strftime('%I:%M %p')}"
    return f"{dt.day:02d} {month} {dt.year} {dt.hour:02d}:{dt.minute:02d}"


def with_content_date_stamp(title: str, options: ExportOptions) -> str:
    """Append ' - <stamp>' to a title when the date stamp goes into the content."""
    if options.date_stamp_mode not in (DateStampMode.CONTENT, DateStampMode.BOTH):
        return title
    stamp = format_stamp_human(options.exported_at, options.label_language)
    return f"{title} - {stamp}" if stamp else title


def default_title(app_name: str, language: LabelLanguage = LabelLanguage.TR) -> str:
    suffix = "Chat" if LabelLanguage(language) == LabelLanguage.EN else "Sohbet"
    return f"{app_name} {suffix}"


def merged_title(app_name: str, count: int, language: LabelLanguage = LabelLanguage.TR) -> str:
    if LabelLanguage(language) == LabelLanguage.EN:
        return f"{app_name} - All Conversations ({count})"
    return f"{app_name} Tum Sohbetler ({count})"


def conversation_fallback_title(index: int, language: LabelLanguage = LabelLanguage.TR) -> str:
    word = "Conversation" if LabelLanguage(language) == LabelLanguage.EN else "Sohbet"
    return f"{word} {index}"
