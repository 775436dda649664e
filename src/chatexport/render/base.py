"""Shared preparation step for every renderer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from chatexport.convert.blocks import html_to_blocks
from chatexport.core.models import (
    CanonicalMessage,
    ContentBlock,
    ConversationDocument,
    ExportOptions,
    MergedExportDocument,
    Role,
    is_message_included,
)
from chatexport.render.labels import default_title, role_label, with_content_date_stamp

log = logging.getLogger(__name__)

Document = ConversationDocument | MergedExportDocument

DEFAULT_APP_NAME = "AI Chat"


@dataclass
class PreparedMessage:
    """A message converted to blocks, with its caption resolved."""

    role: Role
    label: str | None
    blocks: list[ContentBlock] = field(default_factory=list)
    source: CanonicalMessage | None = None

    @property
    def is_meta(self) -> bool:
        return self.role == Role.META


def prepare_messages(
    messages: list[CanonicalMessage],
    options: ExportOptions,
) -> list[PreparedMessage]:
    """Apply the role filter and convert each message's HTML to blocks.

    Messages whose HTML yields no blocks are skipped.
    """
    prepared: list[PreparedMessage] = []
    for message in messages:
        if not is_message_included(message.role, options.message_filter):
            continue
        blocks = html_to_blocks(message.html)
        if not blocks:
            log.debug("Skipping %s message without renderable content", message.role.value)
            continue
        prepared.append(PreparedMessage(
            role=message.role,
            label=role_label(message.role, options.label_language),
            blocks=blocks,
            source=message,
        ))
    return prepared


def document_title(
    document: Document,
    options: ExportOptions,
    app_name: str = DEFAULT_APP_NAME,
) -> str:
    """Document title with the content date stamp applied."""
    title = document.title.strip() or default_title(app_name, options.label_language)
    return with_content_date_stamp(title, options)


@dataclass
class RenderedBlob:
    """One rendered export, ready to be written or uploaded."""

    data: bytes
    mime_type: str
    extension: str

    @property
    def size(self) -> int:
        return len(self.data)
