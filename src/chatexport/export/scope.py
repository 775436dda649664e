"""Scope resolution: which conversations an export covers, and how they are collected.

Multi-conversation scans drive a single browser tab, so they are strictly
sequential. Per-conversation failures are collected, not raised; only a
scan where nothing succeeded is fatal.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit, urlunsplit

from markupsafe import escape

from chatexport.convert.roles import ScoreWeights, correct_roles, has_renderable_content, is_weak_extraction
from chatexport.core.errors import ExportError, ExtractionEmpty, PartialBatchFailure
from chatexport.core.models import (
    CanonicalMessage,
    ConversationDocument,
    LabelLanguage,
    MergedExportDocument,
    Role,
)
from chatexport.render.labels import conversation_fallback_title, merged_title

log = logging.getLogger(__name__)


class Scope(str, Enum):
    SINGLE = "single"
    ALL = "all"
    SELECTED = "selected"


@runtime_checkable
class Navigator(Protocol):
    """The one browser tab a scan drives."""

    def current_url(self) -> str: ...

    def list_conversation_links(self) -> list[str]: ...

    def navigate(self, url: str) -> None: ...

    def wait_until_loaded(self, timeout: float) -> None: ...

    def wait_for_url(self, url: str, timeout: float) -> None: ...

    def extract(self) -> ConversationDocument: ...


class CancelToken:
    """Checked between conversations, never mid-conversation."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class ScanSettings:
    load_timeout: float = 20.0
    settle: float = 1.2
    extract_attempts: int = 16
    extract_retry: float = 0.8
    require_user_prompt: bool = True
    weights: ScoreWeights = field(default_factory=ScoreWeights)

    @classmethod
    def from_config(cls, config: dict) -> ScanSettings:
        nav = config.get("navigation", {})
        return cls(
            load_timeout=float(nav.get("load_timeout_seconds", 20)),
            settle=float(nav.get("settle_seconds", 1.2)),
            extract_attempts=int(nav.get("extract_attempts", 16)),
            extract_retry=float(nav.get("extract_retry_seconds", 0.8)),
            weights=ScoreWeights.from_config(config),
        )


@dataclass
class ScanFailure:
    url: str
    reason: str


@dataclass
class ScopeResult:
    documents: list[ConversationDocument] = field(default_factory=list)
    failures: list[ScanFailure] = field(default_factory=list)
    total: int = 0
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return len(self.documents)

    @property
    def partial(self) -> bool:
        return bool(self.failures) or self.cancelled

    def summary(self) -> str:
        return f"{self.succeeded} of {self.total} processed"

    def partial_failure(self) -> PartialBatchFailure | None:
        """Report object for a partial success; None when every conversation succeeded."""
        if not self.partial:
            return None
        return PartialBatchFailure(self.succeeded, self.total, [f.reason for f in self.failures])

    def raise_if_empty(self) -> None:
        if self.documents:
            return
        if self.failures:
            raise ExtractionEmpty(f"no conversation could be processed: {self.failures[0].reason}")
        raise ExtractionEmpty("no conversation could be processed")


# --- URLs ---


def normalize_url(raw: str | None) -> str:
    """Comparable form of a conversation URL: no query, fragment or trailing slash."""
    value = str(raw or "").strip()
    if not value:
        return ""
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        return value
    path = parts.path.rstrip("/") or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


def unique_urls(urls: list[str]) -> list[str]:
    """Drop duplicates (by normalised form) and non-http entries, preserving order."""
    out: list[str] = []
    seen: set[str] = set()
    for raw in urls:
        normalized = normalize_url(raw)
        if not normalized.startswith(("http://", "https://")) or normalized in seen:
            continue
        seen.add(normalized)
        out.append(normalized)
    return out


_CHAT_PATH_RULES: dict[str, Callable[[str], bool]] = {
    "chatgpt": lambda p: p.startswith("/c/") and len(p) > 3,
    "gemini": lambda p: p.startswith("/app/"),
    "deepseek": lambda p: "/chat/" in p or (p.startswith("/c/") and len(p) > 3),
    "claude": lambda p: "/chat/" in p,
}


def is_likely_chat_url(url: str, site: str | None = None) -> bool:
    """Heuristic check that a link points at a conversation page."""
    path = urlsplit(url).path or "/"
    rule = _CHAT_PATH_RULES.get(site or "")
    if rule is not None:
        return rule(path)
    return "/chat/" in path or "/c/" in path or "/app/" in path


# --- Extraction ---


def _has_user_prompt(messages: list[CanonicalMessage]) -> bool:
    return any(m.role == Role.USER and has_renderable_content(m) for m in messages)


def extract_with_retry(
    navigator: Navigator,
    settings: ScanSettings,
    expected_url: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> ConversationDocument:
    """Poll the extractor until the page shows the expected, fully loaded conversation.

    Raises:
        ExtractionEmpty: with the last reason seen once all attempts are used.
    """
    expected = normalize_url(expected_url)
    last_reason = "no chat content found on this page"
    for attempt in range(settings.extract_attempts):
        if attempt:
            sleep(settings.extract_retry)
        try:
            document = navigator.extract()
        except ExportError as e:
            last_reason = str(e)
            continue

        messages = correct_roles(document.messages)
        if expected and normalize_url(document.source_url) != expected:
            last_reason = "conversation URL has not changed yet"
        elif not any(has_renderable_content(m) for m in messages):
            last_reason = "conversation content has not loaded yet"
        elif settings.require_user_prompt and not _has_user_prompt(messages):
            last_reason = "user prompt has not loaded yet"
        else:
            if is_weak_extraction(messages, settings.weights):
                log.warning("Extraction of %s looks thin (%d messages)",
                            expected or document.source_url, len(messages))
            return document.with_messages(messages)
        log.debug("Extract attempt %d/%d: %s", attempt + 1, settings.extract_attempts, last_reason)
    raise ExtractionEmpty(last_reason)


def _visit(
    navigator: Navigator,
    url: str,
    settings: ScanSettings,
    sleep: Callable[[float], None],
) -> ConversationDocument:
    navigator.navigate(url)
    navigator.wait_until_loaded(settings.load_timeout)
    navigator.wait_for_url(url, settings.load_timeout)
    sleep(settings.settle)
    document = extract_with_retry(navigator, settings, url, sleep)
    document.source_url = url
    return document


def collect_urls(
    navigator: Navigator,
    urls: list[str],
    settings: ScanSettings | None = None,
    cancel: CancelToken | None = None,
    restore_url: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    progress: Callable[[int, int, str], None] | None = None,
) -> ScopeResult:
    """Visit each URL in order and extract it; failures are recorded, not raised."""
    settings = settings or ScanSettings()
    result = ScopeResult(total=len(urls))
    for index, url in enumerate(urls):
        if cancel is not None and cancel.cancelled:
            log.info("Scan cancelled after %d of %d conversations", index, len(urls))
            result.cancelled = True
            break
        if progress is not None:
            progress(index + 1, len(urls), url)
        try:
            result.documents.append(_visit(navigator, url, settings, sleep))
        except Exception as e:
            reason = str(e) or type(e).__name__
            log.warning("Failed to capture %s: %s", url, reason)
            result.failures.append(ScanFailure(url, reason))

    if restore_url:
        try:
            navigator.navigate(restore_url)
        except Exception:
            log.warning("Could not return to %s", restore_url, exc_info=True)
    return result


def collect_single(
    navigator: Navigator,
    settings: ScanSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ScopeResult:
    """The conversation already open in the tab."""
    settings = settings or ScanSettings()
    document = extract_with_retry(navigator, settings, sleep=sleep)
    if not document.source_url:
        document.source_url = navigator.current_url()
    return ScopeResult(documents=[document], total=1)


def discover_links(navigator: Navigator, site: str | None = None) -> list[str]:
    """Conversation links in the page's history list, current conversation first."""
    original = navigator.current_url()
    links = unique_urls([original, *navigator.list_conversation_links()])
    return [u for u in links if is_likely_chat_url(u, site)]


def collect_all(
    navigator: Navigator,
    settings: ScanSettings | None = None,
    cancel: CancelToken | None = None,
    site: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    progress: Callable[[int, int, str], None] | None = None,
) -> ScopeResult:
    original = navigator.current_url()
    links = discover_links(navigator, site)
    if not links:
        raise ExtractionEmpty("no conversation links found; open the chat history list first")
    result = collect_urls(navigator, links, settings, cancel, original, sleep, progress)
    result.raise_if_empty()
    return result


def collect_selected(
    navigator: Navigator,
    indices: list[int],
    settings: ScanSettings | None = None,
    cancel: CancelToken | None = None,
    site: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    progress: Callable[[int, int, str], None] | None = None,
) -> ScopeResult:
    """Conversations picked by zero-based position in the discovered link list."""
    if not indices:
        raise ExtractionEmpty("no conversation selected")
    original = navigator.current_url()
    links = discover_links(navigator, site)
    chosen = [links[i] for i in indices if 0 <= i < len(links)]
    if not chosen:
        raise ExtractionEmpty("selected conversations are not in the history list")
    result = collect_urls(navigator, chosen, settings, cancel, original, sleep, progress)
    result.raise_if_empty()
    return result


def resolve_scope(
    scope: Scope | str,
    navigator: Navigator,
    indices: list[int] | None = None,
    settings: ScanSettings | None = None,
    cancel: CancelToken | None = None,
    site: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    progress: Callable[[int, int, str], None] | None = None,
) -> ScopeResult:
    scope = Scope(scope)
    if scope == Scope.ALL:
        return collect_all(navigator, settings, cancel, site, sleep, progress)
    if scope == Scope.SELECTED:
        return collect_selected(navigator, indices or [], settings, cancel, site, sleep, progress)
    return collect_single(navigator, settings, sleep)


# --- Merge ---


def _separator(index: int, title: str, source_url: str | None) -> CanonicalMessage:
    html = f'<h2 style="margin:0 0 6px 0;">{index}. {escape(title)}</h2>'
    if source_url:
        html += f'<p style="margin:0;color:#64748b;font-size:12px;">{escape(source_url)}</p>'
    return CanonicalMessage(role=Role.META, html=html)


def merge_documents(
    documents: list[ConversationDocument],
    app_name: str,
    language: LabelLanguage = LabelLanguage.TR,
) -> MergedExportDocument:
    """Flatten conversations into one document, a meta heading before each."""
    messages: list[CanonicalMessage] = []
    for index, document in enumerate(documents, start=1):
        title = document.title.strip() or conversation_fallback_title(index, language)
        messages.append(_separator(index, title, document.source_url))
        messages.extend(document.messages)
    return MergedExportDocument(
        title=merged_title(app_name, len(documents), language),
        messages=messages,
    )
