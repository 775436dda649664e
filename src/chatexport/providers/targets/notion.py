"""Notion page target: one page per export, filled in batches of 100 blocks."""

from __future__ import annotations

import logging

from chatexport.core.errors import RemoteTargetFailure
from chatexport.core.models import ExportOptions
from chatexport.providers.targets.base import TargetInfo, UploadResult, error_message, get_token
from chatexport.render.base import Document
from chatexport.render.notion import (
    NotionPagePlan,
    build_notion_blocks,
    normalize_notion_page_id,
    page_title,
    plan_page,
)

log = logging.getLogger(__name__)

API_BASE = "https://api.notion.com/v1"
API_VERSION = "2022-06-28"


class NotionTarget:
    """Create a Notion page under a parent page the integration was invited to."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._token = get_token("notion_token", config.get("token"))
        self._parent_page_id = normalize_notion_page_id(config.get("parent_page_id"))
        self._api_version = config.get("api_version", API_VERSION)
        self._base_url = config.get("base_url", API_BASE).rstrip("/")
        self._timeout = float(config.get("timeout", 60.0))

    @property
    def name(self) -> str:
        return "notion"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Notion", version="1.0.0", accepts_blobs=False)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Notion-Version": self._api_version,
        }

    def _check_ready(self) -> None:
        if not self._token:
            raise RemoteTargetFailure(
                "notion",
                "no Notion token configured. Store one with: "
                "python -c \"import keyring; keyring.set_password('chatexport', 'notion_token', 'secret_...')\"",
            )
        if not self._parent_page_id:
            raise RemoteTargetFailure(
                "notion",
                "invalid parent page id. Set targets.notion.parent_page_id to a page URL or "
                "page id and share that page with the integration.",
            )

    def _send(self, method: str, url: str, body: dict, batches_written: int) -> dict:
        import httpx

        try:
            resp = httpx.request(method, url, headers=self._headers(), json=body, timeout=self._timeout)
        except (httpx.ConnectError, httpx.TimeoutException, OSError) as e:
            raise RemoteTargetFailure(
                "notion", f"API unreachable: {e}", batches_written=batches_written,
            ) from e
        if resp.status_code >= 400:
            raise RemoteTargetFailure(
                "notion",
                error_message(resp, f"API error: {resp.status_code}"),
                status=resp.status_code,
                batches_written=batches_written,
            )
        return resp.json()

    def plan(self, title: str, document: Document, options: ExportOptions) -> NotionPagePlan:
        """Request bodies for a page, without sending anything."""
        blocks = build_notion_blocks(document.messages, options)
        return plan_page(self._parent_page_id, page_title(title, options), blocks)

    def create_page(self, title: str, document: Document, options: ExportOptions) -> UploadResult:
        """Create the page, then append the remaining blocks sequentially.

        A failed append aborts the rest; the page stays partially filled and
        the error reports how many batches were written.
        """
        self._check_ready()
        plan = self.plan(title, document, options)
        log.info("Creating Notion page with %d request(s)", plan.request_count)

        created = self._send("POST", f"{self._base_url}/pages", plan.create_body, batches_written=0)
        page_id = created.get("id")
        written = 1
        if page_id:
            for body in plan.append_bodies:
                self._send("PATCH", f"{self._base_url}/blocks/{page_id}/children", body, written)
                written += 1
        elif plan.append_bodies:
            log.warning("Notion returned no page id; %d append batch(es) not sent", len(plan.append_bodies))
        return UploadResult(provider="Notion", url=created.get("url", ""))
