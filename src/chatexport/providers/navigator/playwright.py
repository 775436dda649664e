"""Browser navigator backed by a Playwright page (sync API)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from chatexport.core.errors import ExtractionEmpty, NavigationTimeout
from chatexport.core.models import ConversationDocument
from chatexport.export.scope import normalize_url

log = logging.getLogger(__name__)

# Generic capture: elements tagged with an author role, in document order
DEFAULT_EXTRACT_SCRIPT = """
() => {
  const nodes = Array.from(document.querySelectorAll('[data-message-author-role]'));
  return {
    title: document.title || '',
    currentUrl: location.href,
    messages: nodes.map((el) => ({
      role: el.getAttribute('data-message-author-role') || 'assistant',
      html: el.innerHTML,
      timestamp: el.getAttribute('data-message-timestamp') || null,
    })),
  };
}
"""

DEFAULT_LINK_SELECTOR = "nav a[href]"
DEFAULT_NAVIGATION_TIMEOUT = 20.0

Extractor = Callable[[object], dict]


def script_extractor(script: str = DEFAULT_EXTRACT_SCRIPT) -> Extractor:
    """Extractor that evaluates a JS function in the page and returns its result."""

    def extract(page) -> dict:
        return page.evaluate(script)

    return extract


def _playwright_errors():
    try:
        from playwright.sync_api import Error, TimeoutError
    except ImportError as err:
        raise ImportError(
            "Playwright is not installed.\n"
            "Run: pip install chatexport[browser] && playwright install chromium"
        ) from err
    return Error, TimeoutError


class PlaywrightNavigator:
    """Drives one Playwright page through conversation URLs."""

    def __init__(
        self,
        page,
        extractor: Extractor | None = None,
        link_selector: str = DEFAULT_LINK_SELECTOR,
        navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
    ) -> None:
        self._page = page
        self._extractor = extractor or script_extractor()
        self._link_selector = link_selector
        self._navigation_timeout = navigation_timeout

    @property
    def name(self) -> str:
        return "playwright"

    @property
    def page(self):
        return self._page

    def current_url(self) -> str:
        return self._page.url

    def list_conversation_links(self) -> list[str]:
        return list(self._page.eval_on_selector_all(
            self._link_selector, "els => els.map((e) => e.href)",
        ))

    def navigate(self, url: str) -> None:
        error_cls, timeout_cls = _playwright_errors()
        try:
            self._page.goto(url, wait_until="commit", timeout=self._navigation_timeout * 1000)
        except timeout_cls as e:
            raise NavigationTimeout(
                f"navigation to {url} timed out after {self._navigation_timeout:g}s"
            ) from e
        except error_cls as e:
            raise NavigationTimeout(f"navigation to {url} failed: {e}") from e

    def wait_until_loaded(self, timeout: float) -> None:
        _, timeout_cls = _playwright_errors()
        try:
            self._page.wait_for_load_state("load", timeout=timeout * 1000)
        except timeout_cls as e:
            raise NavigationTimeout(f"page load did not finish within {timeout:g}s") from e

    def wait_for_url(self, url: str, timeout: float) -> None:
        _, timeout_cls = _playwright_errors()
        expected = normalize_url(url)
        try:
            self._page.wait_for_url(lambda u: normalize_url(u) == expected, timeout=timeout * 1000)
        except timeout_cls as e:
            raise NavigationTimeout(f"target conversation URL did not load: {url}") from e

    def extract(self) -> ConversationDocument:
        error_cls, _ = _playwright_errors()
        try:
            data = self._extractor(self._page)
        except error_cls as e:
            raise ExtractionEmpty(f"extraction script failed: {e}") from e
        if not isinstance(data, dict):
            raise ExtractionEmpty("extraction script returned no data")
        document = ConversationDocument.from_dict(data)
        document.source_url = data.get("currentUrl") or self._page.url
        return document


@contextmanager
def open_browser(
    start_url: str,
    headless: bool = False,
    storage_state: Path | None = None,
    extractor: Extractor | None = None,
    link_selector: str = DEFAULT_LINK_SELECTOR,
    timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
) -> Iterator[PlaywrightNavigator]:
    """Launch Chromium on ``start_url`` and yield a navigator for its page."""
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as err:
        raise ImportError(
            "Playwright is not installed.\n"
            "Run: pip install chatexport[browser] && playwright install chromium"
        ) from err

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=headless)
        try:
            state = str(storage_state) if storage_state and storage_state.exists() else None
            context = browser.new_context(storage_state=state)
            page = context.new_page()
            page.goto(start_url, timeout=timeout * 1000)
            yield PlaywrightNavigator(page, extractor, link_selector, timeout)
            if storage_state:
                storage_state.parent.mkdir(parents=True, exist_ok=True)
                context.storage_state(path=str(storage_state))
                log.info("Session saved to %s", storage_state)
        finally:
            browser.close()
