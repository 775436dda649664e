"""OneDrive target: direct PUT for small files, upload session above the limit."""

from __future__ import annotations

import logging
import re
from urllib.parse import quote

from chatexport.core.errors import RemoteTargetFailure
from chatexport.providers.targets.base import TargetInfo, UploadResult, error_message, get_token
from chatexport.render.base import RenderedBlob

log = logging.getLogger(__name__)

GRAPH_ROOT = "https://graph.microsoft.com/v1.0/me/drive/root"
MIB = 1024 * 1024

_UNSAFE_RE = re.compile(r'[<>:"/\\|?*]')


def onedrive_safe_name(filename: str) -> str:
    return _UNSAFE_RE.sub("_", filename or "chat_export.pdf")


def chunk_ranges(total: int, chunk_size: int) -> list[tuple[int, int]]:
    """Inclusive ``(start, end)`` byte ranges covering ``total`` bytes."""
    return [(start, min(start + chunk_size, total) - 1) for start in range(0, total, chunk_size)]


class OneDriveTarget:
    """Upload an export into the OneDrive root folder."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._token = get_token("onedrive_token", config.get("token"))
        self._simple_limit = int(float(config.get("simple_upload_limit_mb", 4)) * MIB)
        self._chunk_size = int(float(config.get("chunk_size_mb", 5)) * MIB)
        self._timeout = float(config.get("timeout", 120.0))

    @property
    def name(self) -> str:
        return "onedrive"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="OneDrive", version="1.0.0", accepts_blobs=True)

    def upload(self, blob: RenderedBlob, filename: str) -> UploadResult:
        if not self._token:
            raise RemoteTargetFailure(
                "onedrive",
                "no OneDrive token configured. Store a Graph access token with: "
                "python -c \"import keyring; keyring.set_password('chatexport', 'onedrive_token', '...')\"",
            )
        safe_name = onedrive_safe_name(filename)
        if blob.size <= self._simple_limit:
            return self._simple_upload(blob, safe_name)
        return self._session_upload(blob, safe_name)

    def _item_url(self, safe_name: str, action: str) -> str:
        return f"{GRAPH_ROOT}:/{quote(safe_name)}:/{action}"

    def _simple_upload(self, blob: RenderedBlob, safe_name: str) -> UploadResult:
        import httpx

        try:
            resp = httpx.put(
                self._item_url(safe_name, "content"),
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": blob.mime_type or "application/octet-stream",
                },
                content=blob.data,
                timeout=self._timeout,
            )
        except (httpx.ConnectError, httpx.TimeoutException, OSError) as e:
            raise RemoteTargetFailure("onedrive", f"API unreachable: {e}") from e
        if resp.status_code >= 400:
            raise RemoteTargetFailure(
                "onedrive",
                error_message(resp, f"upload failed: {resp.status_code}"),
                status=resp.status_code,
            )
        return UploadResult(provider="OneDrive", url=resp.json().get("webUrl", ""))

    def _session_upload(self, blob: RenderedBlob, safe_name: str) -> UploadResult:
        import httpx

        try:
            resp = httpx.post(
                self._item_url(safe_name, "createUploadSession"),
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": "application/json",
                },
                json={"item": {"name": safe_name}},
                timeout=self._timeout,
            )
        except (httpx.ConnectError, httpx.TimeoutException, OSError) as e:
            raise RemoteTargetFailure("onedrive", f"API unreachable: {e}") from e
        if resp.status_code >= 400:
            raise RemoteTargetFailure(
                "onedrive",
                f"could not create upload session: {resp.status_code}",
                status=resp.status_code,
            )
        upload_url = resp.json().get("uploadUrl")
        if not upload_url:
            raise RemoteTargetFailure("onedrive", "upload session returned no uploadUrl")

        total = blob.size
        ranges = chunk_ranges(total, self._chunk_size)
        log.info("Uploading %s to OneDrive in %d chunk(s)", safe_name, len(ranges))
        web_url = ""
        for index, (start, end) in enumerate(ranges):
            try:
                chunk_resp = httpx.put(
                    upload_url,
                    headers={
                        "Content-Length": str(end - start + 1),
                        "Content-Range": f"bytes {start}-{end}/{total}",
                    },
                    content=blob.data[start:end + 1],
                    timeout=self._timeout,
                )
            except (httpx.ConnectError, httpx.TimeoutException, OSError) as e:
                raise RemoteTargetFailure(
                    "onedrive", f"chunk upload unreachable: {e}", batches_written=index,
                ) from e
            if chunk_resp.status_code >= 400:
                raise RemoteTargetFailure(
                    "onedrive",
                    f"chunk upload failed: {chunk_resp.status_code}",
                    status=chunk_resp.status_code,
                    batches_written=index,
                )
            if chunk_resp.status_code != 202:
                # Final chunk returns the created item
                web_url = chunk_resp.json().get("webUrl", "")
        return UploadResult(provider="OneDrive", url=web_url)
